"""Persistence layer for profile_picture records."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from ..db.db_models import ProfilePictureModel
from ..media.media_models import StoredAssetDescriptor


class ProfilePictureRepository:
    """Store the descriptor each user currently owns."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, user_id: str) -> StoredAssetDescriptor | None:
        with self._session_factory() as session:
            model = session.get(ProfilePictureModel, user_id)
            if model is None:
                return None
            return self._to_domain(model)

    def save(self, user_id: str, descriptor: StoredAssetDescriptor) -> None:
        with self._session_factory() as session:
            model = session.get(ProfilePictureModel, user_id)
            if model is None:
                model = ProfilePictureModel(user_id=user_id)
                session.add(model)
            model.url = descriptor.url
            model.public_id = descriptor.public_id
            model.folder = descriptor.folder
            model.updated_at = datetime.utcnow()
            session.commit()

    def clear(self, user_id: str) -> bool:
        with self._session_factory() as session:
            model = session.get(ProfilePictureModel, user_id)
            if model is None:
                return False
            session.delete(model)
            session.commit()
            return True

    @staticmethod
    def _to_domain(model: ProfilePictureModel) -> StoredAssetDescriptor:
        return StoredAssetDescriptor(url=model.url, public_id=model.public_id, folder=model.folder)
