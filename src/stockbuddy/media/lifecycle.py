"""Coordinate create, delete and update of remote media assets per slot."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import structlog

from ..ingest.ingest_errors import IntakeError
from ..ingest.ingest_models import MediaPayload
from ..ingest.validation import IntakeValidator
from ..providers.providers_base import BlobTransport
from .identifiers import resolve_public_id
from .media_errors import TransportError
from .media_models import (
    AssetOperationResult,
    DeletionOutcome,
    DeletionStatus,
    SlotState,
    StoredAssetDescriptor,
    UpdateOrder,
)

logger = structlog.get_logger(__name__)

# Slots whose lock the current task already holds.
_held_slots: ContextVar[frozenset[str]] = ContextVar("held_slots", default=frozenset())


class SlotLocks:
    """One asyncio lock per slot id, discarded when nobody holds or awaits it.

    Re-entrant within a task: a caller holding a slot can run coordinator
    operations on that slot without deadlocking.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def locked(self, slot_id: str) -> bool:
        lock = self._locks.get(slot_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, slot_id: str) -> AsyncIterator[None]:
        held = _held_slots.get()
        if slot_id in held:
            yield
            return

        lock = self._locks.setdefault(slot_id, asyncio.Lock())
        self._users[slot_id] = self._users.get(slot_id, 0) + 1
        try:
            async with lock:
                token = _held_slots.set(held | {slot_id})
                try:
                    yield
                finally:
                    _held_slots.reset(token)
        finally:
            self._users[slot_id] -= 1
            if not self._users[slot_id]:
                del self._users[slot_id]
                del self._locks[slot_id]


@dataclass(slots=True)
class AssetLifecycleCoordinator:
    """Own the ordering and failure policy between intake, store and delete.

    The coordinator keeps no descriptors: callers pass in the URL they hold and
    receive the new descriptor back. The only shared state is the slot lock
    registry, which serialises operations on the same slot.
    """

    validator: IntakeValidator
    transport: BlobTransport
    namespace: str = "profile-pictures"
    update_order: UpdateOrder = UpdateOrder.DELETE_FIRST
    locks: SlotLocks = field(default_factory=SlotLocks)
    active: dict[str, str] = field(default_factory=dict)
    log: Any = field(default_factory=lambda: logger)

    def slot_busy(self, slot_id: str) -> bool:
        return self.locks.locked(slot_id)

    def is_updating(self, slot_id: str) -> bool:
        """True while an update holds the slot (the transient ``updating`` state)."""
        return self.active.get(slot_id) == "update"

    @asynccontextmanager
    async def slot(self, slot_id: str) -> AsyncIterator[None]:
        """Hold ``slot_id`` across a caller's read-decide-save sequence.

        Coordinator operations issued inside the block reuse the held lock.
        """
        async with self.locks.hold(slot_id):
            with structlog.contextvars.bound_contextvars(slot_id=slot_id):
                yield

    async def create(self, slot_id: str, payload: MediaPayload) -> AssetOperationResult:
        """Validate and upload ``payload``; errors propagate and the slot stays empty."""
        async with self._operation(slot_id, "create"):
            descriptor = await self._store(payload)
        return AssetOperationResult(slot_id=slot_id, state=SlotState.PRESENT, descriptor=descriptor)

    async def delete(self, slot_id: str, url: str | None) -> DeletionOutcome:
        """Delete the asset behind ``url``; unresolvable URLs never reach the provider."""
        async with self._operation(slot_id, "delete"):
            return await self._delete(url)

    async def update(
        self, slot_id: str, old_url: str | None, payload: MediaPayload
    ) -> AssetOperationResult:
        """Replace the asset behind ``old_url`` with ``payload``.

        Not atomic. Always returns a result; failures are reported through
        ``result.state`` and ``result.error``.
        """
        async with self._operation(slot_id, "update"):
            try:
                self.validator.validate(payload)
            except IntakeError as exc:
                return AssetOperationResult(
                    slot_id=slot_id,
                    state=SlotState.PRESENT if old_url else SlotState.EMPTY,
                    error=_detach(exc),
                )

            if not old_url:
                return await self._create_step(slot_id, payload, fallback=SlotState.EMPTY)
            if self.update_order is UpdateOrder.CREATE_FIRST:
                return await self._update_create_first(slot_id, old_url, payload)
            return await self._update_delete_first(slot_id, old_url, payload)

    async def _update_delete_first(
        self, slot_id: str, old_url: str, payload: MediaPayload
    ) -> AssetOperationResult:
        deletion = await self._delete_for_update(old_url)
        result = await self._create_step(slot_id, payload, fallback=SlotState.ERROR)
        result.deletion = deletion
        if result.state is SlotState.ERROR:
            self.log.error(
                "lifecycle.update.asset_lost",
                deletion=deletion.status.value,
                error=str(result.error),
            )
        return result

    async def _update_create_first(
        self, slot_id: str, old_url: str, payload: MediaPayload
    ) -> AssetOperationResult:
        result = await self._create_step(slot_id, payload, fallback=SlotState.PRESENT)
        if result.error is None:
            result.deletion = await self._delete_for_update(old_url)
        return result

    async def _create_step(
        self, slot_id: str, payload: MediaPayload, *, fallback: SlotState
    ) -> AssetOperationResult:
        try:
            descriptor = await self._store(payload)
        except (IntakeError, TransportError) as exc:
            self.log.warning("lifecycle.create.failed", error=str(exc))
            return AssetOperationResult(slot_id=slot_id, state=fallback, error=_detach(exc))
        return AssetOperationResult(slot_id=slot_id, state=SlotState.PRESENT, descriptor=descriptor)

    async def _delete_for_update(self, old_url: str) -> DeletionOutcome:
        try:
            deletion = await self._delete(old_url)
        except TransportError as exc:
            self.log.warning(
                "lifecycle.update.delete_failed",
                error=str(exc),
                status_code=exc.status_code,
            )
            return DeletionOutcome(DeletionStatus.PARTIAL, details=exc.detail)
        if not deletion.deleted:
            self.log.warning(
                "lifecycle.update.delete_skipped",
                status=deletion.status.value,
                public_id=deletion.public_id,
            )
        return deletion

    async def _store(self, payload: MediaPayload) -> StoredAssetDescriptor:
        self.validator.validate(payload)
        return await self.transport.store(payload, self.namespace)

    async def _delete(self, url: str | None) -> DeletionOutcome:
        public_id = resolve_public_id(url)
        if public_id is None:
            self.log.warning("lifecycle.delete.invalid_reference", url=url)
            return DeletionOutcome(DeletionStatus.INVALID_REFERENCE)
        return await self.transport.remove(public_id)

    @asynccontextmanager
    async def _operation(self, slot_id: str, name: str) -> AsyncIterator[None]:
        async with self.locks.hold(slot_id):
            self.active[slot_id] = name
            try:
                with structlog.contextvars.bound_contextvars(slot_id=slot_id, operation=name):
                    self.log.info(f"lifecycle.{name}.start")
                    yield
                    self.log.info(f"lifecycle.{name}.done")
            finally:
                del self.active[slot_id]


def _detach(exc: Exception) -> Exception:
    """Drop tracebacks along the chain; their frames still reference the payload."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        current.__traceback__ = None
        current = current.__cause__ or current.__context__
    return exc
