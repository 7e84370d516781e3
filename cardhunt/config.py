from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CardHunt"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./cardhunt.db"

    # Shared secret for admin endpoints. Empty disables the admin surface.
    admin_secret: str = ""

    # Reset undo window
    undo_window_seconds: int = 300

    # Optimistic transaction retry budget
    transaction_max_attempts: int = 5
    transaction_backoff_seconds: float = 0.01

    # Wrong-answer cooldowns: first miss waits the initial period,
    # each further miss on the same character adds the increment
    quiz_initial_cooldown_seconds: int = 60
    quiz_cooldown_increment_seconds: int = 30


settings = Settings()


# =============================================================================
# TIER THRESHOLDS
# =============================================================================

# Tier is derived from a character's value, never from its id prefix.
LEGENDARY_MIN_VALUE = 50
RARE_MIN_VALUE = 20

# Values offered by the admin character form
LEGENDARY_VALUE = 50
RARE_VALUE = 20
COMMON_VALUE = 8
