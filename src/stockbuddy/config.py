"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db

DEFAULT_ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png")
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_NAMESPACE = "profile-pictures"


@dataclass(slots=True)
class IntakeLimits:
    allowed_content_types: Sequence[str] = DEFAULT_ALLOWED_CONTENT_TYPES
    max_bytes: int = DEFAULT_MAX_BYTES
    chunk_size_bytes: int = 256 * 1024


@dataclass(slots=True)
class CloudinarySettings:
    cloud_name: str
    api_key: str
    api_secret: str
    api_base: str = "https://api.cloudinary.com"
    timeout_seconds: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


@dataclass(slots=True)
class MediaSettings:
    provider: str = "cloudinary"
    namespace: str = DEFAULT_NAMESPACE
    update_order: str = "delete_first"


@dataclass(slots=True)
class AppConfig:
    intake_limits: IntakeLimits
    cloudinary: CloudinarySettings
    media: MediaSettings
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]


def load_cloudinary_settings() -> CloudinarySettings:
    """Read provider credentials from the environment."""
    return CloudinarySettings(
        cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME", ""),
        api_key=os.getenv("CLOUDINARY_API_KEY", ""),
        api_secret=os.getenv("CLOUDINARY_API_SECRET", ""),
        api_base=os.getenv("CLOUDINARY_API_BASE", "https://api.cloudinary.com"),
        timeout_seconds=float(os.getenv("CLOUDINARY_TIMEOUT_SECONDS", 30)),
    )


def load_config() -> AppConfig:
    """Load configuration from environment (SQLite by default)."""
    intake_limits = IntakeLimits(
        max_bytes=int(os.getenv("INTAKE_MAX_BYTES", DEFAULT_MAX_BYTES)),
        chunk_size_bytes=int(os.getenv("INTAKE_CHUNK_SIZE_BYTES", 256 * 1024)),
    )
    media = MediaSettings(
        provider=os.getenv("MEDIA_PROVIDER", "cloudinary"),
        namespace=os.getenv("MEDIA_NAMESPACE", DEFAULT_NAMESPACE),
        update_order=os.getenv("MEDIA_UPDATE_ORDER", "delete_first"),
    )

    database_url = os.getenv("DATABASE_URL", "sqlite:///stockbuddy.db")
    engine = create_engine(database_url, future=True)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(
        intake_limits=intake_limits,
        cloudinary=load_cloudinary_settings(),
        media=media,
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
    )
