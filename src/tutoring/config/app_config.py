"""Application configuration loader.

Loads centralized configuration from config/tutoring.yaml (or the file
named by TUTORING_CONFIG) with fallback to built-in defaults.

Secrets are never stored in the file: each section names the environment
variables that hold them.

Usage:
    from tutoring.config.app_config import load_app_config

    config = load_app_config()
    url = config.backend.get_url()
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("config/tutoring.yaml")
CONFIG_ENV_VAR = "TUTORING_CONFIG"


@dataclass
class LLMSettings:
    """Configuration for the LLM provider."""

    provider: str = "openai"
    base_url: str | None = None
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.3
    max_tokens: int = 300
    timeout: int = 60
    api_key_env: str | None = "OPENAI_API_KEY"

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class BackendSettings:
    """Configuration for the hosted backend (auth, tables, storage)."""

    kind: str = "supabase"
    url_env: str = "SUPABASE_URL"
    key_envs: list[str] = field(
        default_factory=lambda: ["SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY"]
    )
    worksheets_bucket: str = "worksheets"
    assignments_bucket: str = "assignments"

    def get_url(self) -> str | None:
        """Get project URL from environment variable."""
        return os.environ.get(self.url_env)

    def get_key(self) -> str | None:
        """Get the first configured API key found in the environment.

        The service role key is listed first so backend operations are not
        restricted by row-level security.
        """
        for env_name in self.key_envs:
            value = os.environ.get(env_name)
            if value:
                return value
        return None


@dataclass
class ServerSettings:
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )
    max_upload_mb: int = 10


@dataclass
class AnalysisSettings:
    """Worksheet analysis behaviour."""

    use_mock_on_failure: bool = True


@dataclass
class AppConfig:
    """Application-wide configuration."""

    llm: LLMSettings = field(default_factory=LLMSettings)
    backend: BackendSettings = field(default_factory=BackendSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "llm": {
            "provider": "openai",
            "base_url": None,
            "model": "gpt-3.5-turbo",
            "temperature": 0.3,
            "max_tokens": 300,
            "timeout": 60,
            "api_key_env": "OPENAI_API_KEY",
        },
        "backend": {
            "kind": "supabase",
            "url_env": "SUPABASE_URL",
            "key_envs": ["SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY"],
            "buckets": {"worksheets": "worksheets", "assignments": "assignments"},
        },
        "server": {
            "host": "0.0.0.0",
            "port": 3001,
            "cors_origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
            "max_upload_mb": 10,
        },
        "analysis": {
            "use_mock_on_failure": True,
        },
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    llm_data = data.get("llm", {})
    llm = LLMSettings(
        provider=llm_data.get("provider", "openai"),
        base_url=llm_data.get("base_url"),
        model=llm_data.get("model", "gpt-3.5-turbo"),
        temperature=float(llm_data.get("temperature", 0.3)),
        max_tokens=int(llm_data.get("max_tokens", 300)),
        timeout=int(llm_data.get("timeout", 60)),
        api_key_env=llm_data.get("api_key_env"),
    )

    backend_data = data.get("backend", {})
    buckets = backend_data.get("buckets", {})
    backend = BackendSettings(
        kind=backend_data.get("kind", "supabase"),
        url_env=backend_data.get("url_env", "SUPABASE_URL"),
        key_envs=list(
            backend_data.get(
                "key_envs", ["SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY"]
            )
        ),
        worksheets_bucket=buckets.get("worksheets", "worksheets"),
        assignments_bucket=buckets.get("assignments", "assignments"),
    )

    server_data = data.get("server", {})
    server = ServerSettings(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 3001)),
        cors_origins=list(server_data.get("cors_origins", [])),
        max_upload_mb=int(server_data.get("max_upload_mb", 10)),
    )

    analysis_data = data.get("analysis", {})
    analysis = AnalysisSettings(
        use_mock_on_failure=bool(analysis_data.get("use_mock_on_failure", True)),
    )

    return AppConfig(llm=llm, backend=backend, server=server, analysis=analysis)


def _config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return CONFIG_FILE


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, merging the YAML file over the defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()
    config_path = _config_path()

    if config_path.exists():
        logger.debug("loading_app_config", source=str(config_path))
        file_data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        data = _merge(data, file_data)
    else:
        logger.info("using_default_config", looked_at=str(config_path))

    _cached_config = _parse_config(data)
    return _cached_config


def get_llm_settings() -> LLMSettings:
    """Get the LLM section of the application config."""
    return load_app_config().llm


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
