"""
Configuration settings - Infrastructure component for managing application configuration.
Uses pydantic-settings for validation and environment variable loading.
"""

from __future__ import annotations
from typing import Optional, List, Dict, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class ProviderSettings(BaseSettings):
    """Upstream model provider configuration."""

    model_config = SettingsConfigDict(env_prefix="ANTHROPIC_", env_file=".env", extra="ignore")

    api_key: Optional[str] = None
    api_url: str = "https://api.anthropic.com/v1/messages"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 512
    version: str = "2023-06-01"
    connect_timeout_s: float = 5.0

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        """Keep the token budget positive."""
        return max(1, v)


class AgentSettings(BaseSettings):
    """Agentic loop limits."""

    model_config = SettingsConfigDict(env_prefix="AGENT_", env_file=".env", extra="ignore")

    max_tool_rounds: int = 5
    request_timeout_s: float = 30.0
    source_limit: int = 3

    @field_validator("max_tool_rounds")
    @classmethod
    def validate_max_tool_rounds(cls, v: int) -> int:
        """Ensure the tool round cap is reasonable."""
        return max(1, min(v, 10))

    @field_validator("request_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        return v if v > 0 else 30.0

    @field_validator("source_limit")
    @classmethod
    def validate_source_limit(cls, v: int) -> int:
        return max(0, v)


class SearchSettings(BaseSettings):
    """Web search tool configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_", env_file=".env", extra="ignore")

    enabled: bool = True
    max_results: int = 3
    timeout_s: float = 8.0
    user_agent: str = "gather-stream/1.0 (+https://github.com/gather-stream)"

    # Comma-separated domain lists merged into the ranking policy
    extra_allow_domains: str = ""
    extra_deny_domains: str = ""

    @field_validator("max_results")
    @classmethod
    def validate_max_results(cls, v: int) -> int:
        """Clamp result count to what the search tool supports."""
        return max(1, min(v, 5))

    @property
    def allow_domains(self) -> List[str]:
        return _split_csv(self.extra_allow_domains)

    @property
    def deny_domains(self) -> List[str]:
        return _split_csv(self.extra_deny_domains)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Sub-configurations
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)

    # Inbound API key (X-API-Key); unset disables the check
    api_key: Optional[str] = None
    cors_origins: str = ""

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            return "INFO"
        return v.upper()

    @property
    def cors_origin_list(self) -> List[str]:
        return _split_csv(self.cors_origins)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization (secrets redacted)."""
        data = self.model_dump()
        for key_path in (("provider", "api_key"), ("api_key",)):
            target = data
            for part in key_path[:-1]:
                target = target[part]
            if target.get(key_path[-1]):
                target[key_path[-1]] = "***"
        return data

    def validate_required_settings(self) -> List[str]:
        """Validate required settings and return list of missing ones."""
        missing = []
        if not self.provider.api_key:
            missing.append("ANTHROPIC_API_KEY")
        return missing


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Reload settings from environment (for testing)."""
    global _settings
    _settings = AppSettings()
    return _settings
