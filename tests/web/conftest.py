"""Fixtures for the HTTP route tests."""

import pytest
import yaml

from tutoring.config import clear_config_cache


@pytest.fixture
def write_config(tmp_path, monkeypatch):
    """Point the app at a YAML config built from the given dict."""

    def _write(data: dict) -> None:
        path = tmp_path / "tutoring.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        monkeypatch.setenv("TUTORING_CONFIG", str(path))
        clear_config_cache()

    return _write


@pytest.fixture
def no_mock_fallback(write_config):
    """Disable the mock analysis so LLM failures surface as errors."""
    write_config({"analysis": {"use_mock_on_failure": False}})
