"""Factory for blob transports."""

from ..config import CloudinarySettings
from .providers_base import BlobTransport
from .providers_cloudinary import CloudinaryTransport


def create_transport(name: str, *, cloudinary: CloudinarySettings | None = None) -> BlobTransport:
    """Instantiate transport by provider name."""
    lower = name.lower()
    if lower == "cloudinary":
        if cloudinary is None:
            raise ValueError("cloudinary settings are required to instantiate CloudinaryTransport")
        return CloudinaryTransport(settings=cloudinary)
    raise ValueError(f"Unsupported media provider '{name}'")
