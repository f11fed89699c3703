"""Application settings for wager-engine."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the event provider and validation tolerances."""

    model_config = SettingsConfigDict(
        env_prefix="WAGER_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    sgo_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "SPORTS_GAME_ODDS_API_KEY",
            "SPORTS_GAME_ODDS_API_KEY_HEADER",
            "WAGER_ENGINE_SGO_API_KEY",
        ),
    )
    sgo_base_url: str = "https://api.sportsgameodds.com/v2"
    sgo_timeout_s: float = 20.0
    sgo_max_retries: int = 2
    event_cache_ttl_s: float = 15.0
    fallback_window_h: float = 12.0
    fallback_search_limit: int = 200
    tolerance: float = 0.05
    default_league: str = "NBA"
