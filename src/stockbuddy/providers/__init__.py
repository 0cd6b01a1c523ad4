"""Remote object-storage transports."""

from .providers_base import BlobTransport
from .providers_cloudinary import CloudinaryTransport
from .providers_factory import create_transport

__all__ = ["BlobTransport", "CloudinaryTransport", "create_transport"]
