"""Configuration infrastructure package."""

from .settings import AppSettings, ProviderSettings, AgentSettings, SearchSettings, get_settings, reload_settings

__all__ = [
    'AppSettings',
    'ProviderSettings',
    'AgentSettings',
    'SearchSettings',
    'get_settings',
    'reload_settings',
]
