"""Configuration package for the tutoring platform."""

from tutoring.config.app_config import (
    AnalysisSettings,
    AppConfig,
    BackendSettings,
    LLMSettings,
    ServerSettings,
    clear_config_cache,
    get_llm_settings,
    load_app_config,
)

__all__ = [
    "AnalysisSettings",
    "AppConfig",
    "BackendSettings",
    "LLMSettings",
    "ServerSettings",
    "clear_config_cache",
    "get_llm_settings",
    "load_app_config",
]
