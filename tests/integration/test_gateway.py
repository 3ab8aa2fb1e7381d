"""
Integration tests for the AI gateway and the model configuration registry.
"""
import json

import pytest

from prompt_gateway.core.errors import ErrorKind, GatewayInvalidRequestError, ModelConfigNotFoundError, ProviderNotFoundError
from prompt_gateway.core.gateway import AIGateway
from prompt_gateway.core.model_configs import AIConfigFile, ModelConfigRegistry
from prompt_gateway.core.config import GatewayConfig
from prompt_gateway.models.catalog import CatalogSource
from prompt_gateway.models.provider import ProviderId

CHAT_REPLY = {
    "choices": [{"message": {"content": "Hi!"}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 2, "completion_tokens": 1},
}


def defaults(registry):
    return [c.id for c in registry.list() if c.is_default]


class TestProviderStatus:
    """Test provider listing and key management."""

    def test_available_providers(self, gateway):
        """Test all five providers are listed."""
        ids = [info["id"] for info in gateway.get_available_providers()]
        assert ids == ["openai", "anthropic", "gemini", "grok", "openrouter"]

    @pytest.mark.asyncio
    async def test_status_without_network(self, gateway, http):
        """Test status checks only the credential store."""
        await gateway.store_api_key("openai", "sk-test-1234567890abcdefghij")
        status = await gateway.check_providers_status()

        assert status["openai"].has_key is True
        assert status["openai"].status == "configured"
        assert status["anthropic"].status == "not_configured"
        assert status["grok"].provider == "Grok"
        assert "real_time_data" in status["grok"].capabilities
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_store_and_remove_key(self, gateway):
        """Test keys reach the adapter and are cleared from it."""
        await gateway.store_api_key("gemini", "AIza-test")
        adapter = gateway.providers.get("gemini")
        assert adapter.state.value == "ready"

        await gateway.remove_api_key("gemini")
        assert adapter.state.value == "unconfigured"
        assert await gateway.credentials.has_api_key("gemini") is False

    @pytest.mark.asyncio
    async def test_unknown_provider(self, gateway):
        """Test unknown provider ids are rejected."""
        with pytest.raises(ProviderNotFoundError):
            await gateway.store_api_key("mistral", "key")

        result = await gateway.test_provider_connection("mistral", "key")
        assert result.success is False
        assert result.type == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_connection_uses_given_key(self, gateway, http):
        """Test the connection test uses the supplied key, not the stored one."""
        http.reply("GET", "/models", {"data": [{"id": "gpt-4"}]})
        result = await gateway.test_provider_connection("openai", "sk-candidate")

        assert result.success is True
        assert http.calls[0].headers["Authorization"] == "Bearer sk-candidate"
        assert await gateway.credentials.has_api_key("openai") is False

    def test_registry_membership(self, gateway):
        """Test the provider registry lookups."""
        assert "openai" in gateway.providers
        assert "mistral" not in gateway.providers
        assert list(gateway.providers) == list(ProviderId)


class TestModelLoading:
    """Test catalog loading through the gateway."""

    @pytest.mark.asyncio
    async def test_load_without_key(self, gateway, http):
        """Test loading without a stored key fails as authentication."""
        result = await gateway.load_provider_models("openai")
        assert result.success is False
        assert result.type == ErrorKind.AUTHENTICATION
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_load_and_cache(self, gateway, http):
        """Test loaded models are kept for later lookups."""
        http.reply("GET", "/models", {"data": [{"id": "grok-2", "created": 1723000000}]})
        await gateway.store_api_key("grok", "xai-test")

        result = await gateway.load_provider_models("grok")
        assert result.success is True
        assert result.source == CatalogSource.API
        assert [m.id for m in gateway.get_cached_models("grok")] == ["grok-2"]
        assert set(gateway.get_all_cached_models()) == {"grok"}

        again = await gateway.load_provider_models("grok")
        assert again.source == CatalogSource.MEMORY

        refreshed = await gateway.refresh_provider_models("grok")
        assert refreshed.source == CatalogSource.API
        assert len(http.calls_to("/models")) == 2

    @pytest.mark.asyncio
    async def test_load_degraded(self, gateway):
        """Test an unreachable vendor still yields the fallback list."""
        await gateway.store_api_key("openai", "sk-test")
        result = await gateway.load_provider_models("openai")

        assert result.success is True
        assert result.source == CatalogSource.FALLBACK
        assert "gpt-4o" in [m.id for m in result.models]

    @pytest.mark.asyncio
    async def test_load_all(self, gateway, http):
        """Test only configured providers are loaded."""
        http.reply("GET", "/models", {"data": [{"id": "gpt-4o"}]})
        await gateway.store_api_key("openai", "sk-test")
        await gateway.store_api_key("anthropic", "sk-ant-test")

        result = await gateway.load_all_available_models()

        assert set(result.models) == {"openai", "anthropic"}
        assert [m.id for m in result.models["openai"]] == ["gpt-4o"]
        assert result.has_errors is False

    @pytest.mark.asyncio
    async def test_remove_key_forgets_models(self, gateway, http):
        """Test removing a key drops that provider's loaded models."""
        http.reply("GET", "/models", {"data": [{"id": "gpt-4o"}]})
        await gateway.store_api_key("openai", "sk-test")
        await gateway.load_provider_models("openai")

        await gateway.remove_api_key("openai")
        assert gateway.get_cached_models("openai") == []


class TestSendRequest:
    """Test sending prompts through model configurations."""

    @pytest.mark.asyncio
    async def test_configuration_applied(self, gateway, http):
        """Test configuration parameters are sent and the response is tagged."""
        http.reply("POST", "/chat/completions", CHAT_REPLY)
        await gateway.store_api_key("openai", "sk-test")
        config = gateway.add_model_config("openai", "gpt-4o", name="GPT-4o", temperature=0.2, max_tokens=256)

        response = await gateway.send_request("Hello", config)

        assert response.success is True
        body = http.calls[0].body
        assert body["model"] == "gpt-4o"
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 256
        assert response.configuration.id == config.id
        assert response.configuration.name == "GPT-4o"
        assert response.configuration.model_id == "gpt-4o"
        assert "request_duration_ms" in response.metadata

    @pytest.mark.asyncio
    async def test_options_override_configuration(self, gateway, http):
        """Test explicit options win over configuration values."""
        http.reply("POST", "/chat/completions", CHAT_REPLY)
        await gateway.store_api_key("openai", "sk-test")
        config = gateway.add_model_config("openai", "gpt-4o", temperature=0.2)

        await gateway.send_request("Hello", config.id, {"temperature": 1.1, "system_prompt": "Short"})

        body = http.calls[0].body
        assert body["temperature"] == 1.1
        assert body["max_tokens"] == 4000
        assert body["messages"][0] == {"role": "system", "content": "Short"}

    @pytest.mark.asyncio
    async def test_unknown_configuration(self, gateway, http):
        """Test an unknown configuration id is a validation error."""
        response = await gateway.send_request("Hello", "config_missing")
        assert response.success is False
        assert response.type == ErrorKind.VALIDATION
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_missing_key(self, gateway, http):
        """Test sending without a stored key."""
        config = gateway.add_model_config("anthropic", "claude-3-5-haiku-20241022")
        response = await gateway.send_request("Hello", config)

        assert response.type == ErrorKind.AUTHENTICATION
        assert response.provider == "anthropic"
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_empty_prompt(self, gateway, http):
        """Test validation happens before any call."""
        await gateway.store_api_key("openai", "sk-test")
        config = gateway.add_model_config("openai", "gpt-4o")

        response = await gateway.send_request("   ", config)
        assert response.type == ErrorKind.VALIDATION
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_vendor_failure_is_data(self, gateway, http):
        """Test vendor errors come back as error responses."""
        http.fail("POST", "/chat/completions", "HTTP 429: slow down", status_code=429)
        await gateway.store_api_key("openai", "sk-test")
        config = gateway.add_model_config("openai", "gpt-4o")

        response = await gateway.send_request("Hello", config)
        assert response.success is False
        assert response.type == ErrorKind.RATE_LIMIT
        assert response.model == "gpt-4o"


class TestModelConfigRegistry:
    """Test the model configuration registry invariants."""

    def test_first_config_is_default(self):
        """Test the first configuration becomes the default."""
        registry = ModelConfigRegistry()
        first = registry.add("openai", "gpt-4o")
        registry.add("grok", "grok-2")

        assert registry.get_default().id == first.id
        assert defaults(registry) == [first.id]
        assert first.id.startswith("config_")

    def test_set_default_is_exclusive(self):
        """Test only one configuration is ever the default."""
        registry = ModelConfigRegistry()
        a = registry.add("openai", "gpt-4o")
        b = registry.add("grok", "grok-2")
        c = registry.add("gemini", "gemini-1.5-pro", is_default=True)

        assert defaults(registry) == [c.id]
        registry.set_default(b.id)
        registry.set_default(b.id)
        assert defaults(registry) == [b.id]
        assert registry.current_model_id == b.id
        assert a.id in registry

    def test_set_default_unknown(self):
        """Test an unknown id leaves the default unchanged."""
        registry = ModelConfigRegistry()
        a = registry.add("openai", "gpt-4o")
        with pytest.raises(ModelConfigNotFoundError):
            registry.set_default("config_missing")
        assert defaults(registry) == [a.id]

    def test_remove_default_promotes(self):
        """Test removing the default promotes the first remaining configuration."""
        registry = ModelConfigRegistry()
        a = registry.add("openai", "gpt-4o")
        b = registry.add("grok", "grok-2")
        registry.add("gemini", "gemini-1.5-pro")

        registry.remove(a.id)
        assert defaults(registry) == [b.id]
        assert len(registry) == 2

    def test_remove_last(self):
        """Test removing the last configuration clears the default."""
        registry = ModelConfigRegistry()
        a = registry.add("openai", "gpt-4o")
        registry.remove(a.id)
        assert registry.get_default() is None
        assert registry.current_model_id is None

    def test_update(self):
        """Test updates validate and keep immutable fields."""
        registry = ModelConfigRegistry()
        a = registry.add("openai", "gpt-4o", name="GPT-4o")
        b = registry.add("grok", "grok-2")

        updated = registry.update(b.id, custom_name="Fast", temperature=1.0, id="hijack", is_default=True)
        assert updated.id == b.id
        assert updated.custom_name == "Fast"
        assert updated.updated is not None
        assert defaults(registry) == [b.id]

        with pytest.raises(GatewayInvalidRequestError):
            registry.update(a.id, temperature=3)

    def test_invalid_add(self):
        """Test invalid fields and providers are rejected."""
        registry = ModelConfigRegistry()
        with pytest.raises(GatewayInvalidRequestError):
            registry.add("openai", "gpt-4o", max_tokens=0)
        with pytest.raises(GatewayInvalidRequestError):
            registry.add("mistral", "large")
        assert len(registry) == 0

    def test_usage_stats(self, gateway):
        """Test usage statistics per provider."""
        gateway.add_model_config("openai", "gpt-4o", name="GPT-4o")
        gateway.add_model_config("openai", "gpt-4", custom_name="Classic")
        gateway.add_model_config("grok", "grok-2")

        stats = gateway.get_usage_stats()
        assert stats["total_configs"] == 3
        assert stats["provider_stats"]["openai"] == {"count": 2, "models": ["GPT-4o", "Classic"]}
        assert stats["provider_stats"]["grok"]["models"] == ["grok-2"]
        assert stats["default_model"] == "GPT-4o"


class TestConfigFile:
    """Test saving and loading the model configuration document."""

    def test_round_trip(self, tmp_path):
        """Test a saved registry loads back with the same default."""
        path = tmp_path / "ai-config.json"
        registry = ModelConfigRegistry()
        registry.add("openai", "gpt-4o")
        b = registry.add("anthropic", "claude-3-opus-20240229", name="Opus", is_default=True)

        assert AIConfigFile(path).save(registry) is True
        document = json.loads(path.read_text())
        assert document["version"] == "1.0"
        assert document["current_model_id"] == b.id
        assert "api_key" not in path.read_text()

        restored = ModelConfigRegistry()
        assert AIConfigFile(path).load_into(restored) is True
        assert len(restored) == 2
        assert defaults(restored) == [b.id]
        assert restored.get(b.id).name == "Opus"

    def test_missing_file(self, tmp_path):
        """Test a missing document loads nothing."""
        config_file = AIConfigFile(tmp_path / "absent.json")
        assert config_file.load() is None
        assert config_file.load_into(ModelConfigRegistry()) is False
        assert config_file.delete() is True

    def test_malformed_file(self, tmp_path):
        """Test an unreadable document is ignored."""
        path = tmp_path / "ai-config.json"
        path.write_text('{"something": "else"}')
        assert AIConfigFile(path).load() is None

    def test_gateway_persistence(self, tmp_path, credentials, http, clock):
        """Test the gateway saves and loads through its config file."""
        path = tmp_path / "ai-config.json"
        gateway = AIGateway(credentials, http, config=GatewayConfig(), config_file=AIConfigFile(path), clock=clock)
        config = gateway.add_model_config("gemini", "gemini-1.5-flash", custom_name="Quick")
        assert gateway.save_model_configs() is True

        other = AIGateway(credentials, http, config_file=AIConfigFile(path), clock=clock)
        assert other.load_model_configs() is True
        assert other.get_default_model_config().id == config.id
        assert [c.custom_name for c in other.get_active_model_configs()] == ["Quick"]

    def test_gateway_without_file(self, gateway):
        """Test persistence is a no-op without a config file."""
        assert gateway.save_model_configs() is False
        assert gateway.load_model_configs() is False


class TestFromConfig:
    """Test building the default stack from configuration."""

    @pytest.mark.asyncio
    async def test_file_backends(self, tmp_path, http):
        """Test storage paths select the file-backed implementations."""
        config = GatewayConfig()
        config.cache.storage_path = str(tmp_path / "models.json")
        config.credentials.storage_path = str(tmp_path / "secrets.json")

        gateway = AIGateway.from_config(config, http=http)
        await gateway.store_api_key("grok", "xai-test")
        http.reply("GET", "/models", {"data": [{"id": "grok-2"}]})
        await gateway.load_provider_models("grok")

        assert (tmp_path / "secrets.json").exists()
        assert "ai_models_cache_grok" in json.loads((tmp_path / "models.json").read_text())
        await gateway.aclose()
