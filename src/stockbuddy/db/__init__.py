"""Database models and schema helpers."""

from .db_init import init_db
from .db_models import Base, ProfilePictureModel

__all__ = ["Base", "ProfilePictureModel", "init_db"]
