"""Dependency wiring helpers."""

from fastapi import FastAPI

from .config import AppConfig
from .ingest.validation import IntakeValidator
from .media.lifecycle import AssetLifecycleCoordinator
from .media.media_models import UpdateOrder
from .media.profile_picture_api import router as profile_picture_router
from .providers.providers_factory import create_transport
from .repositories.profile_picture_repository import ProfilePictureRepository


def build_coordinator(config: AppConfig) -> AssetLifecycleCoordinator:
    """Assemble validator, transport and coordinator from configuration."""
    return AssetLifecycleCoordinator(
        validator=IntakeValidator(config.intake_limits),
        transport=create_transport(config.media.provider, cloudinary=config.cloudinary),
        namespace=config.media.namespace,
        update_order=UpdateOrder(config.media.update_order),
    )


def include_routers(app: FastAPI, config: AppConfig) -> None:
    """Mount module routers and attach services."""
    app.state.config = config
    app.state.asset_coordinator = build_coordinator(config)
    app.state.picture_repo = ProfilePictureRepository(config.session_factory)

    app.include_router(profile_picture_router)
