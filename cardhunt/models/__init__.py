from cardhunt.models.catch import CatchResult
from cardhunt.models.character import (
    CARDS_COLLECTION,
    Character,
    CharacterValidation,
    InvalidCharacter,
    Tier,
    ValidCharacter,
    check_tier_prefix,
    tier_from_value,
    validate_character,
)
from cardhunt.models.cooldown import QuizCooldowns, format_cooldown
from cardhunt.models.snapshot import Snapshot, is_expired, seconds_remaining
from cardhunt.models.team import TEAMS_COLLECTION, Team, team_problems

__all__ = [
    "CARDS_COLLECTION",
    "CatchResult",
    "Character",
    "CharacterValidation",
    "InvalidCharacter",
    "QuizCooldowns",
    "Snapshot",
    "TEAMS_COLLECTION",
    "Team",
    "Tier",
    "ValidCharacter",
    "check_tier_prefix",
    "format_cooldown",
    "is_expired",
    "seconds_remaining",
    "team_problems",
    "tier_from_value",
    "validate_character",
]
