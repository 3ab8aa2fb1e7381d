"""
Tests for gateway configuration loading.
"""
from prompt_gateway.core.config import GatewayConfig, load_config

SAMPLE = """
timeouts:
  request_ms: 30000
  connection_test_ms: 5000
cache:
  memory_ttl_seconds: 60
  storage_path: ${PG_TEST_CACHE_PATH}
  max_storage_bytes: 5000000
defaults:
  temperature: 0.3
credentials:
  service_name: my-app
providers:
  openai:
    base_url: http://localhost:8080/v1/
  gemini: {}
"""


class TestLoadConfig:
    """Test YAML configuration loading."""

    def test_defaults(self):
        """Test the built-in defaults."""
        config = GatewayConfig()
        assert config.timeouts.request_ms == 60000
        assert config.timeouts.catalog_ms == 30000
        assert config.cache.memory_ttl_seconds == 300
        assert config.cache.persistent_ttl_seconds == 86400
        assert config.cache.stale_grace_seconds == 7 * 86400
        assert config.defaults.max_prompt_length == 100000
        assert config.credentials.service_name == "prompt-constructor-ai"

    def test_load_yaml(self, tmp_path, monkeypatch):
        """Test values are read from the file with env expansion."""
        monkeypatch.setenv("PG_TEST_CACHE_PATH", "/tmp/models.json")
        path = tmp_path / "gateway.yaml"
        path.write_text(SAMPLE)

        config = load_config(str(path))

        assert config.timeouts.request_ms == 30000
        assert config.timeouts.connection_test_ms == 5000
        assert config.timeouts.catalog_ms == 30000
        assert config.cache.memory_ttl_seconds == 60
        assert config.cache.storage_path == "/tmp/models.json"
        assert config.cache.max_storage_bytes == 5000000
        assert config.defaults.temperature == 0.3
        assert config.defaults.max_tokens == 4000
        assert config.credentials.service_name == "my-app"
        assert config.base_urls == {"openai": "http://localhost:8080/v1"}

    def test_unset_env_var(self, tmp_path, monkeypatch):
        """Test an unset variable reads as missing."""
        monkeypatch.delenv("PG_TEST_CACHE_PATH", raising=False)
        path = tmp_path / "gateway.yaml"
        path.write_text(SAMPLE)

        assert load_config(str(path)).cache.storage_path is None

    def test_missing_file(self, tmp_path):
        """Test a missing file falls back to defaults."""
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config == GatewayConfig()

    def test_invalid_yaml(self, tmp_path):
        """Test unparsable YAML falls back to defaults."""
        path = tmp_path / "gateway.yaml"
        path.write_text("timeouts: [unclosed")
        assert load_config(str(path)) == GatewayConfig()

    def test_env_config_path(self, tmp_path, monkeypatch):
        """Test the config path can come from the environment."""
        path = tmp_path / "custom.yaml"
        path.write_text("defaults:\n  max_tokens: 123\n")
        monkeypatch.setenv("PROMPT_GATEWAY_CONFIG", str(path))

        assert load_config().defaults.max_tokens == 123

    def test_from_dict(self):
        """Test building from an already parsed mapping."""
        config = GatewayConfig.from_dict({"defaults": {"max_prompt_length": 50}})
        assert config.defaults.max_prompt_length == 50
        assert GatewayConfig.from_dict(None) == GatewayConfig()
