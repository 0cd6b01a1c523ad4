"""Upload validation utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fastapi import UploadFile

from ..config import IntakeLimits
from .ingest_errors import PayloadTooLargeError, UnsupportedMediaError, UploadReadError
from .ingest_models import MediaPayload

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IntakeValidator:
    """Gate payloads by declared type and size before any network call."""

    limits: IntakeLimits
    log: logging.Logger = field(default_factory=lambda: logger)

    def validate(self, payload: MediaPayload) -> MediaPayload:
        """Return ``payload`` unchanged or raise an :class:`IntakeError`."""
        self._check_content_type(payload.content_type)
        size = max(payload.size_bytes, len(payload.data))
        if size > self.limits.max_bytes:
            self._reject_oversize(size)
        return payload

    async def read_upload(self, upload: UploadFile) -> MediaPayload:
        """Buffer a multipart upload in memory, enforcing limits while reading."""
        content_type = self._check_content_type(upload.content_type)

        chunks: list[bytes] = []
        size = 0
        try:
            while True:
                chunk = await upload.read(self.limits.chunk_size_bytes)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.limits.max_bytes:
                    self._reject_oversize(size)
                chunks.append(chunk)
        except PayloadTooLargeError:
            raise
        except Exception as exc:
            self.log.error("intake.upload.read_failed", exc_info=exc)
            raise UploadReadError(f"Failed to read upload: {exc}") from exc
        finally:
            await upload.close()

        payload = MediaPayload(
            data=b"".join(chunks),
            content_type=content_type,
            size_bytes=size,
            filename=upload.filename or "upload",
        )
        self.log.info(
            "intake.upload.validated",
            extra={
                "filename": payload.filename,
                "size_bytes": payload.size_bytes,
                "content_type": payload.content_type,
            },
        )
        return payload

    def _check_content_type(self, content_type: str | None) -> str:
        if content_type not in self.limits.allowed_content_types:
            self.log.warning(
                "intake.rejected.unsupported_media",
                extra={"content_type": content_type},
            )
            raise UnsupportedMediaError(content_type)
        return content_type

    def _reject_oversize(self, size: int) -> None:
        self.log.warning(
            "intake.rejected.payload_too_large",
            extra={"size_bytes": size, "limit_bytes": self.limits.max_bytes},
        )
        raise PayloadTooLargeError(size, self.limits.max_bytes)
