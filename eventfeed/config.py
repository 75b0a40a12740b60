from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# places the Toronto feed never lists, matched as whole words in the location
EXCLUDED_LOCATIONS = [
    "new york", "ny", "manhattan", "brooklyn",
    "washington", "dc",
    "chicago", "il",
    "buffalo",
]


class Settings(BaseSettings):
    """
    Runtime settings for the normalizer and its maintenance commands.

    Each field is read from the upper-case environment variable of the same
    name (``PRICE_CEILING``, ``PAGE_FETCHER``, ...) or from a ``.env`` file.
    Empty variables are ignored.
    """

    events_file: str = "data/events.json"
    price_ceiling: float = Field(200.0, ge=0)
    reject_expensive: bool = True
    excluded_locations: List[str] = Field(default_factory=lambda: list(EXCLUDED_LOCATIONS))
    past_window_days: int = Field(30, ge=0)
    future_window_days: int = Field(365, ge=0)
    batch_size: int = Field(10, ge=1)
    item_delay_seconds: float = Field(0.5, ge=0)
    batch_delay_seconds: float = Field(5.0, ge=0)
    page_fetcher: Literal["static", "rendered", "hybrid"] = "static"
    http_timeout: int = Field(20, ge=1)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )


def load_settings(env_file: Optional[str] = None, **overrides) -> Settings:
    """Settings from a .env file and the environment; explicit overrides win."""
    values = {k: v for k, v in overrides.items() if v is not None}
    if env_file is not None:
        values["_env_file"] = env_file
    return Settings(**values)
