"""Abstract blob transport definition."""

from abc import ABC, abstractmethod

from ..ingest.ingest_models import MediaPayload
from ..media.media_models import DeletionOutcome, StoredAssetDescriptor


class BlobTransport(ABC):
    """Base interface for remote storage providers.

    Implementations perform exactly one provider call per method and never
    retry; failures surface as :class:`~..media.media_errors.TransportError`.
    """

    @abstractmethod
    async def store(self, payload: MediaPayload, namespace: str) -> StoredAssetDescriptor:
        """Upload ``payload`` under ``namespace`` and return its descriptor."""

    @abstractmethod
    async def remove(self, public_id: str) -> DeletionOutcome:
        """Delete the image asset identified by ``public_id``."""
