"""Tests for the YAML configuration loader."""

from tutoring.config import clear_config_cache, get_llm_settings, load_app_config
from tutoring.config.app_config import BackendSettings, LLMSettings


class TestDefaults:
    """Tests for built-in defaults (no config file)."""

    def test_defaults_when_file_missing(self):
        """Missing file falls back to defaults."""
        config = load_app_config()

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-3.5-turbo"
        assert config.llm.max_tokens == 300
        assert config.backend.kind == "supabase"
        assert config.backend.worksheets_bucket == "worksheets"
        assert config.backend.assignments_bucket == "assignments"
        assert config.server.port == 3001
        assert "http://localhost:5173" in config.server.cors_origins
        assert config.server.max_upload_mb == 10
        assert config.analysis.use_mock_on_failure is True

    def test_config_is_cached(self):
        """Second call returns the cached object."""
        assert load_app_config() is load_app_config()

    def test_get_llm_settings(self):
        """get_llm_settings returns the llm section."""
        assert get_llm_settings() == load_app_config().llm


class TestYamlFile:
    """Tests for loading a config file."""

    def test_file_overrides_defaults(self, tmp_path, monkeypatch):
        """Values in the file replace defaults; unset keys keep defaults."""
        config_path = tmp_path / "tutoring.yaml"
        config_path.write_text(
            """
llm:
  provider: lmstudio
  model: local-model
backend:
  kind: memory
  buckets:
    worksheets: uploads
server:
  port: 8080
analysis:
  use_mock_on_failure: false
"""
        )
        monkeypatch.setenv("TUTORING_CONFIG", str(config_path))
        clear_config_cache()

        config = load_app_config()

        assert config.llm.provider == "lmstudio"
        assert config.llm.model == "local-model"
        assert config.llm.temperature == 0.3
        assert config.backend.kind == "memory"
        assert config.backend.worksheets_bucket == "uploads"
        assert config.backend.assignments_bucket == "assignments"
        assert config.server.port == 8080
        assert config.server.host == "0.0.0.0"
        assert config.analysis.use_mock_on_failure is False

    def test_force_reload(self, tmp_path, monkeypatch):
        """force_reload picks up file changes."""
        config_path = tmp_path / "tutoring.yaml"
        config_path.write_text("server:\n  port: 4000\n")
        monkeypatch.setenv("TUTORING_CONFIG", str(config_path))
        clear_config_cache()
        assert load_app_config().server.port == 4000

        config_path.write_text("server:\n  port: 5000\n")
        assert load_app_config().server.port == 4000
        assert load_app_config(force_reload=True).server.port == 5000

    def test_empty_file(self, tmp_path, monkeypatch):
        """An empty file behaves like no file."""
        config_path = tmp_path / "tutoring.yaml"
        config_path.write_text("")
        monkeypatch.setenv("TUTORING_CONFIG", str(config_path))
        clear_config_cache()

        assert load_app_config().server.port == 3001


class TestSecrets:
    """Tests for environment-provided secrets."""

    def test_llm_api_key_from_env(self, monkeypatch):
        """API key is read from the named variable."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert LLMSettings().get_api_key() == "sk-test"

    def test_llm_api_key_missing(self):
        """No variable means no key."""
        assert LLMSettings().get_api_key() is None

    def test_backend_prefers_service_role_key(self, monkeypatch):
        """Service role key wins over the anon key."""
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        assert BackendSettings().get_key() == "service"

    def test_backend_falls_back_to_anon_key(self, monkeypatch):
        """Anon key is used when the service key is absent."""
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        assert BackendSettings().get_key() == "anon"

    def test_backend_url(self, monkeypatch):
        """Project URL comes from SUPABASE_URL."""
        monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
        settings = BackendSettings()
        assert settings.get_url() == "https://project.supabase.co"
        assert settings.get_key() is None
