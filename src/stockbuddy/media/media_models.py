"""Media data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class DeletionStatus(StrEnum):
    """Tagged outcomes of a delete attempt."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    INVALID_REFERENCE = "invalid_reference"
    PARTIAL = "partial"


class SlotState(StrEnum):
    """States of a logical asset slot."""

    EMPTY = "empty"
    PRESENT = "present"
    UPDATING = "updating"
    ERROR = "error"


class UpdateOrder(StrEnum):
    """Step ordering for replacing an asset."""

    DELETE_FIRST = "delete_first"
    CREATE_FIRST = "create_first"


@dataclass(frozen=True, slots=True)
class StoredAssetDescriptor:
    url: str
    public_id: str
    folder: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DeletionOutcome:
    status: DeletionStatus
    public_id: str | None = None
    details: Any = None

    @property
    def deleted(self) -> bool:
        return self.status is DeletionStatus.DELETED

    @property
    def asset_gone(self) -> bool:
        """True when the provider no longer holds the asset."""
        return self.status in (DeletionStatus.DELETED, DeletionStatus.NOT_FOUND)


@dataclass(slots=True)
class AssetOperationResult:
    """Structured result of a coordinator operation on a slot."""

    slot_id: str
    state: SlotState
    descriptor: StoredAssetDescriptor | None = None
    deletion: DeletionOutcome | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        if self.state is SlotState.PRESENT:
            return self.error is None
        if self.state is SlotState.EMPTY:
            return self.deletion is not None and self.deletion.deleted
        return False
