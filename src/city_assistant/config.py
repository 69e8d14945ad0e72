"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from city_assistant.core.types import DEFAULT_SESSION_TIMEOUTS, Channel


class CityProfile(BaseModel):
    name: str = "City of Doral"
    state: str = "Florida"
    address: str = "8401 NW 53rd Terrace, Doral, FL 33166"
    main_phone: str = "(305) 593-6725"
    police_phone: str = "(305) 593-6699"
    transfer_phone: str = "+13055934700"  # dialed by the IVR on escalation


class KnowledgeConfig(BaseModel):
    snapshot_path: str = "./data/knowledge-base.json"
    max_content_length: int = 5000
    summary_length: int = 200
    context_limit: int = 5
    browse_limit: int = 10
    max_browse_limit: int = 50
    refresh_cron: Optional[str] = None  # e.g. "0 2 * * *"


class SessionConfig(BaseModel):
    timeouts: dict[Channel, int] = Field(default_factory=lambda: dict(DEFAULT_SESSION_TIMEOUTS))

    @field_validator("timeouts")
    @classmethod
    def _fill_missing_channels(cls, value: dict[Channel, int]) -> dict[Channel, int]:
        merged = dict(DEFAULT_SESSION_TIMEOUTS)
        merged.update(value)
        for channel, seconds in merged.items():
            if seconds <= 0:
                raise ValueError(f"Session timeout for '{channel}' must be positive")
        return merged

    def timeout_for(self, channel: Channel) -> timedelta:
        return timedelta(seconds=self.timeouts[channel])


class LLMConfig(BaseModel):
    backend: str = "anthropic"  # "anthropic" | "openai"
    fallback_backend: Optional[str] = None
    model: str = "claude-3-5-haiku-latest"
    fallback_model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 1000
    short_max_tokens: int = 320
    short_reply_channels: list[Channel] = Field(default_factory=lambda: [Channel.SMS])
    timeout: float = 30.0

    def max_tokens_for(self, channel: Channel) -> int:
        if channel in self.short_reply_channels:
            return self.short_max_tokens
        return self.max_tokens


class AnthropicConfig(BaseModel):
    api_key: str = ""
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: int = 60


class OpenAIConfig(BaseModel):
    api_key: str = ""
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: int = 60


class StorageConfig(BaseModel):
    db_path: str = "./data/city_assistant.db"


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class IVRConfig(BaseModel):
    voice_en: str = "Polly.Joanna"
    voice_es: str = "Polly.Penelope"
    locale_en: str = "en-US"
    locale_es: str = "es-MX"
    hints: str = "city hall, permit, parks, doral, police, license, utility, water, event"


class ChannelsConfig(BaseModel):
    sms_segment_length: int = 160
    sms_max_segments: int = 4
    social_max_length: dict[Channel, int] = Field(
        default_factory=lambda: {
            Channel.FACEBOOK: 2000,
            Channel.INSTAGRAM: 1000,
            Channel.WHATSAPP: 4096,
        }
    )
    ivr: IVRConfig = Field(default_factory=IVRConfig)


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"
    data_dir: str = "./data"
    city: CityProfile = Field(default_factory=CityProfile)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    anthropic: Optional[AnthropicConfig] = None
    openai: Optional[OpenAIConfig] = None
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)

    @classmethod
    def default(cls) -> AppConfig:
        return cls()


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = raw_data.get("data_dir", "./data")
    data_dir = _interpolate_env_vars(data_dir)

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
