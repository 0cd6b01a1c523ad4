"""Domain-specific exceptions for the intake gate."""

UNSUPPORTED_MEDIA_REASON = "Unsupported file type. Please upload only JPG or PNG images."


class IntakeError(Exception):
    """Base class for intake-related errors."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UnsupportedMediaError(IntakeError):
    """Raised when Content-Type is not allowed."""

    def __init__(self, content_type: str | None) -> None:
        super().__init__(UNSUPPORTED_MEDIA_REASON)
        self.content_type = content_type


class PayloadTooLargeError(IntakeError):
    """Raised when uploaded file exceeds configured limits."""

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        limit_mb = limit_bytes / (1024 * 1024)
        super().__init__(f"File too large. Maximum size is {limit_mb:g} MB.")
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class UploadReadError(IntakeError):
    """Raised when streaming the upload fails."""
