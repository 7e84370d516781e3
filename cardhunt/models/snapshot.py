from dataclasses import dataclass
from datetime import datetime
from typing import Any

DEFAULT_UNDO_WINDOW_SECONDS = 300


@dataclass(frozen=True)
class Snapshot:
    """
    Full copy of the teams and cards collections taken before a reset.

    Each record is the document's fields plus its "id".
    """

    teams: tuple[dict[str, Any], ...]
    cards: tuple[dict[str, Any], ...]
    timestamp: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds()


def is_expired(
    snapshot: Snapshot,
    now: datetime,
    window_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS,
) -> bool:
    """A snapshot may be restored while its age is at most the window."""
    return snapshot.age_seconds(now) > window_seconds


def seconds_remaining(
    snapshot: Snapshot,
    now: datetime,
    window_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS,
) -> float:
    return max(0.0, window_seconds - snapshot.age_seconds(now))
