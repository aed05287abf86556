"""Pydantic models describing the mailpush ``config.yaml`` document."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


NO_MATCH = -1000
"""Filter sentinel; every configured keyword weight must be greater."""

PUSHOVER_MESSAGES_URL = "https://api.pushover.net/1/messages.json"


class ImapSettings(BaseModel):
    """Connection parameters for the watched IMAP account."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(min_length=1)
    port: int = Field(default=993, gt=0, lt=65536)
    ssl: bool = True
    username: str
    password: str
    folder: str = "INBOX"
    timeout: Optional[float] = Field(default=None, gt=0)


class WatchSettings(BaseModel):
    """Timing of the IDLE cycle and of reconnection attempts."""

    model_config = ConfigDict(extra="forbid")

    sleep_time: int = Field(default=300, gt=0)
    idle_poll_seconds: float = Field(default=1.0, gt=0)
    backoff_base: int = Field(default=5, gt=0)
    backoff_cap: int = Field(default=60, gt=0)

    @model_validator(mode="after")
    def _validate_backoff(self) -> "WatchSettings":
        if self.backoff_cap < self.backoff_base:
            raise ValueError("backoff_cap must be greater than or equal to backoff_base")
        return self


class NotifySettings(BaseModel):
    """Keyword table and preview length used by the filter and dispatcher."""

    model_config = ConfigDict(extra="forbid")

    words: Dict[str, int] = Field(default_factory=dict)
    body_length: int = Field(default=300, ge=0)

    @field_validator("words", mode="before")
    @classmethod
    def _lowercase_words(cls, value: Any) -> Any:
        # Later duplicates (after lowercasing) keep the higher weight.
        if not isinstance(value, dict):
            return value
        table: Dict[str, Any] = {}
        for word, weight in value.items():
            key = str(word).lower()
            if not key:
                raise ValueError("notify words must not be empty")
            if key in table and isinstance(weight, int) and isinstance(table[key], int):
                weight = max(weight, table[key])
            table[key] = weight
        return table

    @field_validator("words")
    @classmethod
    def _check_weights(cls, value: Dict[str, int]) -> Dict[str, int]:
        for word, weight in value.items():
            if weight <= NO_MATCH:
                raise ValueError(f"weight for '{word}' must be greater than {NO_MATCH}")
        return value


class PushoverSettings(BaseModel):
    """Delivery options forwarded to the Pushover messages API."""

    model_config = ConfigDict(extra="forbid")

    user: str = Field(min_length=1)
    token: str = Field(min_length=1)
    device: Optional[str] = None
    sound: Optional[str] = None
    url: Optional[str] = None
    url_title: Optional[str] = None
    retry: Optional[int] = Field(default=None, ge=30)
    expire: Optional[int] = Field(default=None, gt=0, le=10800)
    api_url: str = PUSHOVER_MESSAGES_URL
    timeout: float = Field(default=10.0, gt=0)


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    imap: ImapSettings
    watch: WatchSettings = Field(default_factory=WatchSettings)
    notify: NotifySettings = Field(default_factory=NotifySettings)
    pushover: PushoverSettings
