"""
Quiz cooldowns for wrong answers.

A wrong answer locks the quiz for that character only:
- First wrong answer: the initial cooldown (60 seconds by default)
- Each further wrong answer on the same character: +increment (30 seconds)
- A correct answer clears the character's cooldown
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from cardhunt.config import settings


@dataclass
class CooldownEntry:
    expires_at: datetime
    attempts: int


@dataclass
class QuizCooldowns:
    """Per-character wrong-answer cooldowns for one client."""

    initial_seconds: int = field(default_factory=lambda: settings.quiz_initial_cooldown_seconds)
    increment_seconds: int = field(
        default_factory=lambda: settings.quiz_cooldown_increment_seconds
    )
    _entries: dict[str, CooldownEntry] = field(default_factory=dict, repr=False)

    def remaining(self, character_id: str, now: datetime) -> int | None:
        """
        Seconds left on a character's cooldown, rounded up.

        Returns None when there is no active cooldown. An expired entry keeps
        its attempt count, so the next wrong answer waits longer.
        """
        entry = self._entries.get(character_id)
        if entry is None:
            return None

        if now >= entry.expires_at:
            return None

        return math.ceil((entry.expires_at - now).total_seconds())

    def record_wrong_answer(self, character_id: str, now: datetime) -> int:
        """Start (or extend) a cooldown. Returns its length in seconds."""
        entry = self._entries.get(character_id)
        attempts = entry.attempts if entry is not None else 0

        seconds = self.initial_seconds + attempts * self.increment_seconds
        self._entries[character_id] = CooldownEntry(
            expires_at=now + timedelta(seconds=seconds),
            attempts=attempts + 1,
        )
        return seconds

    def clear(self, character_id: str) -> None:
        self._entries.pop(character_id, None)

    def cleanup_expired(self, now: datetime) -> int:
        """Drop every expired entry, forgetting its attempts. Returns how many were removed."""
        expired = [cid for cid, entry in self._entries.items() if now >= entry.expires_at]
        for character_id in expired:
            del self._entries[character_id]
        return len(expired)


def format_cooldown(seconds: int) -> str:
    """Format seconds as M:SS."""
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes}:{secs:02d}"
