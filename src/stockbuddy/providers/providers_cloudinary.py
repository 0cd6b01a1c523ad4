"""Cloudinary transport implementation."""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import CloudinarySettings
from ..ingest.ingest_models import MediaPayload
from ..media.media_errors import TransportError
from ..media.media_models import DeletionOutcome, DeletionStatus, StoredAssetDescriptor
from .providers_base import BlobTransport

logger = logging.getLogger(__name__)

# Fit within 500x500, keep aspect ratio, never upscale.
PROFILE_TRANSFORMATION = "c_limit,h_500,w_500"
RESOURCE_TYPE = "image"
DELIVERY_TYPE = "upload"

_METADATA_FIELDS = ("format", "width", "height", "bytes", "version", "resource_type", "created_at")


@dataclass(slots=True)
class CloudinaryTransport(BlobTransport):
    """Store and delete images through the Cloudinary REST API."""

    settings: CloudinarySettings
    transformation: str = PROFILE_TRANSFORMATION
    clock: Any = field(default=time.time)
    log: logging.Logger = field(default_factory=lambda: logger)

    async def store(self, payload: MediaPayload, namespace: str) -> StoredAssetDescriptor:
        self._require_credentials()
        params: dict[str, Any] = {
            "folder": namespace,
            "timestamp": int(self.clock()),
            "transformation": self.transformation,
        }
        form = {
            **{key: str(value) for key, value in params.items()},
            "api_key": self.settings.api_key,
            "signature": sign_params(params, self.settings.api_secret),
        }
        files = {"file": (payload.filename, payload.data, payload.content_type)}
        url = f"{self._endpoint()}/{RESOURCE_TYPE}/upload"

        self.log.info(
            "transport.store.start",
            extra={"folder": namespace, "size_bytes": payload.size_bytes, "content_type": payload.content_type},
        )
        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                response = await client.post(url, data=form, files=files)
        except httpx.HTTPError as exc:
            self.log.error("transport.store.failed", extra={"folder": namespace, "error": str(exc)})
            raise TransportError(f"Cloudinary upload failed: {exc}", detail=str(exc)) from exc

        body = self._decode(response, operation="upload")
        asset_url = body.get("secure_url") or body.get("url")
        public_id = body.get("public_id")
        if not asset_url or not public_id:
            raise TransportError(
                "Cloudinary upload response is missing url or public_id",
                status_code=response.status_code,
                detail=body,
            )

        descriptor = StoredAssetDescriptor(
            url=asset_url,
            public_id=public_id,
            folder=namespace,
            metadata={key: body[key] for key in _METADATA_FIELDS if key in body},
        )
        self.log.info(
            "transport.store.success",
            extra={"folder": namespace, "public_id": public_id},
        )
        return descriptor

    async def remove(self, public_id: str) -> DeletionOutcome:
        self._require_credentials()
        url = f"{self._endpoint()}/resources/{RESOURCE_TYPE}/{DELIVERY_TYPE}"
        params = {"public_ids[]": public_id}
        auth = (self.settings.api_key, self.settings.api_secret)

        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                response = await client.delete(url, params=params, auth=auth)
        except httpx.HTTPError as exc:
            self.log.error("transport.remove.failed", extra={"public_id": public_id, "error": str(exc)})
            raise TransportError(f"Cloudinary delete failed: {exc}", detail=str(exc)) from exc

        body = self._decode(response, operation="delete")
        status = (body.get("deleted") or {}).get(public_id)
        if status == "deleted":
            outcome = DeletionOutcome(DeletionStatus.DELETED, public_id=public_id)
        elif status == "not_found":
            outcome = DeletionOutcome(DeletionStatus.NOT_FOUND, public_id=public_id, details=body)
        else:
            outcome = DeletionOutcome(DeletionStatus.PARTIAL, public_id=public_id, details=body)
        self.log.info(
            "transport.remove.completed",
            extra={"public_id": public_id, "status": outcome.status.value},
        )
        return outcome

    def _endpoint(self) -> str:
        return f"{self.settings.api_base.rstrip('/')}/v1_1/{self.settings.cloud_name}"

    def _require_credentials(self) -> None:
        if not self.settings.is_configured:
            raise TransportError("Cloudinary credentials are not configured")

    def _decode(self, response: httpx.Response, *, operation: str) -> dict[str, Any]:
        if response.status_code // 100 != 2:
            detail = _extract_error(response)
            self.log.error(
                "transport.response.error",
                extra={"operation": operation, "status_code": response.status_code, "error_detail": detail},
            )
            raise TransportError(
                f"Cloudinary {operation} failed (status={response.status_code}): {detail}",
                status_code=response.status_code,
                detail=detail,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Cloudinary {operation} returned an invalid body",
                status_code=response.status_code,
                detail=response.text[:500],
            ) from exc
        if not isinstance(body, dict):
            raise TransportError(
                f"Cloudinary {operation} returned an unexpected body",
                status_code=response.status_code,
                detail=body,
            )
        return body


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """Return the SHA-1 request signature Cloudinary expects for signed uploads."""
    to_sign = "&".join(
        f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def _extract_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return (error.get("message") or "").strip() or str(error)
    return str(data)
