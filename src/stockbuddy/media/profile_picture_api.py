"""HTTP routes for profile picture upload, replacement and removal."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status

from ..ingest.ingest_errors import (
    IntakeError,
    PayloadTooLargeError,
    UnsupportedMediaError,
    UploadReadError,
)
from ..repositories.profile_picture_repository import ProfilePictureRepository
from .lifecycle import AssetLifecycleCoordinator
from .media_errors import TransportError
from .media_models import SlotState, StoredAssetDescriptor

router = APIRouter(prefix="/api/profile", tags=["profile"])
logger = logging.getLogger(__name__)

TRANSPORT_FAILURE_MESSAGE = "Image service is unavailable. Please try again."


def get_coordinator(request: Request) -> AssetLifecycleCoordinator:
    try:
        return request.app.state.asset_coordinator  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("AssetLifecycleCoordinator is not configured") from exc


def get_picture_repo(request: Request) -> ProfilePictureRepository:
    try:
        return request.app.state.picture_repo  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("ProfilePictureRepository is not configured") from exc


def _descriptor_body(descriptor: StoredAssetDescriptor) -> dict[str, Any]:
    return {
        "success": True,
        "profilePicture": descriptor.url,
        "publicId": descriptor.public_id,
        "folder": descriptor.folder,
    }


def _error(status_code: int, failure_reason: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"success": False, "failure_reason": failure_reason, "error": message},
    )


def _intake_error(exc: IntakeError) -> HTTPException:
    if isinstance(exc, UnsupportedMediaError):
        return _error(status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "unsupported_media_type", exc.reason)
    if isinstance(exc, PayloadTooLargeError):
        return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "payload_too_large", exc.reason)
    return _error(status.HTTP_400_BAD_REQUEST, "invalid_request", exc.reason)


@router.get("/{user_id}/picture")
async def get_profile_picture(
    user_id: str,
    repo: ProfilePictureRepository = Depends(get_picture_repo),
) -> dict[str, Any]:
    descriptor = repo.get(user_id)
    if descriptor is None:
        raise _error(status.HTTP_404_NOT_FOUND, "not_found", "No profile picture")
    return _descriptor_body(descriptor)


@router.post("/{user_id}/picture")
async def upload_profile_picture(
    user_id: str,
    image: UploadFile = File(...),
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
    repo: ProfilePictureRepository = Depends(get_picture_repo),
) -> dict[str, Any]:
    """Accept a single ``image`` field and create or replace the user's picture."""
    if coordinator.slot_busy(user_id):
        logger.warning("profile.picture.rate_limited", extra={"slot_id": user_id})
        raise _error(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "slot_busy",
            "Another upload for this profile is in progress.",
        )

    try:
        payload = await coordinator.validator.read_upload(image)
    except (UnsupportedMediaError, PayloadTooLargeError, UploadReadError) as exc:
        raise _intake_error(exc) from exc

    async with coordinator.slot(user_id):
        current = repo.get(user_id)
        if current is None:
            try:
                result = await coordinator.create(user_id, payload)
            except IntakeError as exc:
                raise _intake_error(exc) from exc
            except TransportError as exc:
                raise _error(status.HTTP_502_BAD_GATEWAY, "provider_error", TRANSPORT_FAILURE_MESSAGE) from exc
        else:
            result = await coordinator.update(user_id, current.url, payload)
            if result.state is SlotState.ERROR and result.deletion is not None and result.deletion.deleted:
                # Old asset is deleted and the new one never landed.
                repo.clear(user_id)
                logger.error("profile.picture.reference_lost", extra={"slot_id": user_id})
            if isinstance(result.error, IntakeError):
                raise _intake_error(result.error) from result.error

        descriptor = result.descriptor
        if descriptor is None:
            raise _error(
                status.HTTP_502_BAD_GATEWAY, "provider_error", TRANSPORT_FAILURE_MESSAGE
            ) from result.error

        repo.save(user_id, descriptor)
    return _descriptor_body(descriptor)


@router.delete("/{user_id}/picture")
async def delete_profile_picture(
    user_id: str,
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
    repo: ProfilePictureRepository = Depends(get_picture_repo),
) -> dict[str, Any]:
    async with coordinator.slot(user_id):
        current = repo.get(user_id)
        if current is None:
            raise _error(status.HTTP_404_NOT_FOUND, "not_found", "No profile picture")

        try:
            outcome = await coordinator.delete(user_id, current.url)
        except TransportError as exc:
            raise _error(status.HTTP_502_BAD_GATEWAY, "provider_error", TRANSPORT_FAILURE_MESSAGE) from exc

        if outcome.deleted:
            repo.clear(user_id)
    return {"success": outcome.deleted, "result": outcome.status.value, "publicId": outcome.public_id}
