"""
Admin session: the shared-secret gate and reset with undo.

The session keeps at most one snapshot, taken by the most recent
reset_with_undo. Undo restores it while it is within the undo window and then
discards it. Expiry is computed when undo is attempted; nothing runs in the
background.
"""

import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from cardhunt.db.store import DocumentStore
from cardhunt.models.failure import (
    AdminAuthError,
    ExpiredUndoError,
    NoUndoAvailableError,
)
from cardhunt.models.snapshot import Snapshot, is_expired, seconds_remaining
from cardhunt.services.snapshots import create_snapshot, reset, restore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UndoStatus:
    available: bool
    seconds_remaining: float = 0.0
    snapshot_taken_at: datetime | None = None


class AdminSession:
    """
    State owned by one admin portal.

    Args:
        store: Document store
        secret: Configured admin secret; empty disables admin access
        undo_window_seconds: How long a reset can be undone
        on_change: Called after reset or restore so readers can drop cached views
    """

    def __init__(
        self,
        store: DocumentStore,
        secret: str,
        undo_window_seconds: float,
        on_change: Callable[[], None] | None = None,
    ):
        self.store = store
        self._secret = secret
        self.undo_window_seconds = undo_window_seconds
        self._on_change = on_change
        self._snapshot: Snapshot | None = None

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    def check_secret(self, candidate: str | None) -> bool:
        if not self._secret or not candidate:
            return False
        return hmac.compare_digest(candidate.encode(), self._secret.encode())

    def verify_secret(self, candidate: str | None) -> None:
        """
        Raises:
            AdminAuthError: If the candidate does not match the configured secret
        """
        if not self.check_secret(candidate):
            logger.warning("Rejected admin request with a bad secret")
            raise AdminAuthError()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    async def reset_with_undo(self, now: datetime | None = None) -> Snapshot:
        """
        Snapshot the game, then reset it.

        The snapshot replaces any earlier one. It is kept even if the reset
        fails partway, so a partial reset can still be undone.
        """
        snapshot = await create_snapshot(self.store, now=now)
        self._snapshot = snapshot
        try:
            await reset(self.store)
        finally:
            self._changed()
        return snapshot

    async def undo(self, now: datetime | None = None) -> Snapshot:
        """
        Restore the snapshot taken by the last reset.

        Raises:
            NoUndoAvailableError: If there is no snapshot
            ExpiredUndoError: If the window has passed (the snapshot is discarded)
            TransientFailureError: If the restore could not complete (the
                snapshot is kept so undo can be retried)
        """
        now = now or datetime.now(UTC)
        snapshot = self._snapshot
        if snapshot is None:
            raise NoUndoAvailableError()

        if is_expired(snapshot, now, self.undo_window_seconds):
            self._snapshot = None
            logger.info("Discarded expired undo snapshot from %s", snapshot.timestamp.isoformat())
            raise ExpiredUndoError(snapshot.age_seconds(now), self.undo_window_seconds)

        try:
            await restore(self.store, snapshot, now=now, window_seconds=self.undo_window_seconds)
        finally:
            self._changed()

        self._snapshot = None
        return snapshot

    def undo_status(self, now: datetime | None = None) -> UndoStatus:
        now = now or datetime.now(UTC)
        snapshot = self._snapshot
        if snapshot is None or is_expired(snapshot, now, self.undo_window_seconds):
            return UndoStatus(available=False)
        return UndoStatus(
            available=True,
            seconds_remaining=seconds_remaining(snapshot, now, self.undo_window_seconds),
            snapshot_taken_at=snapshot.timestamp,
        )
