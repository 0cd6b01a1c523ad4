"""Errors raised by the media transport and identifier layers."""

from __future__ import annotations

from typing import Any


class MediaError(Exception):
    """Base class for media lifecycle errors."""


class TransportError(MediaError):
    """Raised when the storage provider or the network fails.

    ``detail`` carries the provider's raw error payload for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class InvalidReferenceError(MediaError):
    """Raised when an asset URL cannot be mapped back to a provider identifier."""

    def __init__(self, url: object) -> None:
        super().__init__(f"Cannot resolve asset identifier from {url!r}")
        self.url = url
