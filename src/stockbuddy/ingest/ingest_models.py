"""Data structures for the intake gate."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, weakref_slot=True)
class MediaPayload:
    """In-memory upload accepted for a single request.

    Never written to local storage; dropped once the transport call returns.
    """

    data: bytes
    content_type: str
    size_bytes: int
    filename: str = "upload"

    @classmethod
    def from_bytes(
        cls, data: bytes, *, content_type: str, filename: str = "upload"
    ) -> "MediaPayload":
        return cls(data=data, content_type=content_type, size_bytes=len(data), filename=filename)
