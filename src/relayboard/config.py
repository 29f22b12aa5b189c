"""Library settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RELAYS = [
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.snort.social",
]

DEFAULT_STORAGE_KEY = "spiders.nostr.player.v1"


class Settings(BaseSettings):
    """Relayboard configuration loaded from environment variables with RELAYBOARD_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="RELAYBOARD_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Relays ---
    relays: list[str] = DEFAULT_RELAYS
    publish_timeout_seconds: float = 5.0
    query_timeout_seconds: float = 5.0
    connect_timeout_seconds: float = 3.0
    verify_signatures: bool = True

    # --- Identity persistence ---
    identity_path: str = "~/.relayboard/identity.json"
    storage_key: str = DEFAULT_STORAGE_KEY

    # --- Feeds / leaderboard ---
    feed_hashtag: str = "word5"
    feed_limit: int = 50
    leaderboard_query_limit: int = 200
    leaderboard_top_n: int = 50
    stats_query_limit: int = 100
    streak_period_seconds: int = 86_400  # 1 day
    streak_grace_periods: int = 2

    # --- Score posts ---
    series: str = "otherstuffadventcal"
    game: str = "DontFSpiders"
    launchdate: str = "011225"
    base_url: str = "https://"
    tagged_npub: str = "npub1khev409r2pa0k8a0an005mpvgv5swnyg54eh948ccxjsax97pm3srphq8m"
    promo_line: str = "Check out more games daily this december at https://advent.otherstuff.ai/"

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "console"


@lru_cache
def get_settings() -> Settings:
    """Get cached library settings."""
    return Settings()
