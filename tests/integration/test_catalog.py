"""
Integration tests for the tiered model catalog and alias resolution.
"""
import asyncio

import pytest

from prompt_gateway.adapters.anthropic_adapter import AnthropicAdapter
from prompt_gateway.adapters.openai_adapter import OpenAIAdapter
from prompt_gateway.cache.catalog import TieredModelCatalog
from prompt_gateway.cache.models_cache import ModelsCache
from prompt_gateway.cache.storage import JsonFileStorage, MemoryStorage
from prompt_gateway.core.errors import GatewayConnectionError
from prompt_gateway.models.catalog import CatalogSource, ModelDescriptor
from prompt_gateway.models.provider import ProviderId

DAY = 24 * 60 * 60


def make_models(*model_ids):
    return [ModelDescriptor(id=model_id, name=model_id, provider=ProviderId.OPENAI) for model_id in model_ids]


class RecordingFetcher:
    """Catalog fetcher that counts calls and can be told to fail."""

    def __init__(self, models):
        self.models = models
        self.calls = 0
        self.error = None

    async def __call__(self, api_key):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return list(self.models)


@pytest.fixture
def fetcher():
    return RecordingFetcher(make_models("m-2025-01", "m-2024-06"))


@pytest.fixture
def catalog(models_cache, fetcher, clock):
    return TieredModelCatalog(
        ProviderId.OPENAI,
        models_cache,
        fetcher=fetcher,
        fallback=lambda: make_models("m-fallback"),
        clock=clock,
    )


class TestTieredCatalog:
    """Test tier selection in the catalog reader."""

    @pytest.mark.asyncio
    async def test_live_then_memory(self, catalog, fetcher):
        """Test the first read goes live and the second is served from memory."""
        first = await catalog.get("sk-test")
        second = await catalog.get("sk-test")

        assert first.source == CatalogSource.API
        assert second.source == CatalogSource.MEMORY
        assert [m.id for m in second.models] == [m.id for m in first.models]
        assert fetcher.calls == 1

    @pytest.mark.asyncio
    async def test_live_writes_through(self, catalog, models_cache):
        """Test a live fetch is written to the persistent tier."""
        await catalog.get("sk-test")
        entry = models_cache.get_cache("openai")
        assert entry is not None
        assert entry.source == "api"
        assert entry.count == 2

    @pytest.mark.asyncio
    async def test_persistent_after_memory_expires(self, catalog, fetcher, clock):
        """Test the persistent tier answers once the memory TTL has passed."""
        await catalog.get("sk-test")
        clock.advance(10 * 60)

        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.PERSISTENT
        assert fetcher.calls == 1

        again = await catalog.get("sk-test")
        assert again.source == CatalogSource.MEMORY

    @pytest.mark.asyncio
    async def test_force_refresh_skips_caches(self, catalog, fetcher):
        """Test a forced refresh always goes live."""
        await catalog.get("sk-test")
        fetcher.models = make_models("m-2025-06")

        result = await catalog.get("sk-test", force_refresh=True)
        assert result.source == CatalogSource.API
        assert [m.id for m in result.models] == ["m-2025-06"]
        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_stale_within_grace(self, catalog, fetcher, clock):
        """Test an expired record inside the grace window is served as stale."""
        await catalog.get("sk-test")
        clock.advance(2 * DAY)
        fetcher.error = GatewayConnectionError("Network error: connection refused", "openai")

        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.STALE
        assert result.is_degraded
        assert [m.id for m in result.models] == ["m-2025-01", "m-2024-06"]

    @pytest.mark.asyncio
    async def test_stale_not_remembered(self, catalog, fetcher, clock):
        """Test a stale answer does not stop the next read from going live."""
        await catalog.get("sk-test")
        clock.advance(2 * DAY)
        fetcher.error = GatewayConnectionError("Network error", "openai")
        await catalog.get("sk-test")

        fetcher.error = None
        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.API
        assert fetcher.calls == 3

    @pytest.mark.asyncio
    async def test_fallback_beyond_grace(self, catalog, fetcher, clock):
        """Test the hardcoded list is used once the record is past the grace window."""
        await catalog.get("sk-test")
        clock.advance(7 * DAY + 60)
        fetcher.error = GatewayConnectionError("Network error", "openai")

        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.FALLBACK
        assert result.timestamp is None
        assert [m.id for m in result.models] == ["m-fallback"]

    @pytest.mark.asyncio
    async def test_fallback_without_key(self, catalog, fetcher):
        """Test no key and no cache degrades to the fallback list without a fetch."""
        result = await catalog.get(None)
        assert result.source == CatalogSource.FALLBACK
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error(self, catalog, fetcher):
        """Test any fetch failure degrades instead of raising."""
        fetcher.error = ValueError("bad payload")
        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.FALLBACK

    @pytest.mark.asyncio
    async def test_empty_live_catalog(self, catalog, fetcher):
        """Test an empty live catalog is treated as a failure."""
        fetcher.models = []
        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.FALLBACK

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_fetch(self, catalog, fetcher):
        """Test concurrent forced refreshes issue a single live call."""
        results = await asyncio.gather(
            catalog.get("sk-test", force_refresh=True),
            catalog.get("sk-test", force_refresh=True),
            catalog.get("sk-test", force_refresh=True),
        )
        assert fetcher.calls == 1
        assert all(r.source == CatalogSource.API for r in results)

    @pytest.mark.asyncio
    async def test_failed_refresh_write_keeps_stale_record(self, fetcher, clock):
        """Test a refresh too large to store leaves the previous record usable as stale."""
        scratch = MemoryStorage()
        ModelsCache(scratch, clock=clock).set_cache("openai", make_models("m-2025-01"))
        record_size = sum(len(k) + len(scratch.get_item(k)) for k in scratch.keys())

        models_cache = ModelsCache(MemoryStorage(max_bytes=int(record_size * 1.5)), clock=clock)
        fetcher.models = make_models("m-2025-01")
        catalog = TieredModelCatalog(
            ProviderId.OPENAI,
            models_cache,
            fetcher=fetcher,
            fallback=lambda: make_models("m-fallback"),
            clock=clock,
        )
        await catalog.get("sk-test")

        clock.advance(2 * DAY)
        fetcher.models = make_models(*[f"m-2025-{n:02d}-extended-context" for n in range(1, 41)])
        refreshed = await catalog.get("sk-test", force_refresh=True)
        assert refreshed.source == CatalogSource.API
        assert len(refreshed.models) == 40

        clock.advance(10 * 60)
        fetcher.error = GatewayConnectionError("Network error: connection refused", "openai")
        result = await catalog.get("sk-test")
        assert result.source == CatalogSource.STALE
        assert [m.id for m in result.models] == ["m-2025-01"]

    @pytest.mark.asyncio
    async def test_clear(self, catalog, fetcher, models_cache):
        """Test clearing drops both cache tiers."""
        await catalog.get("sk-test")
        catalog.clear()

        assert models_cache.get_cache("openai") is None
        await catalog.get("sk-test")
        assert fetcher.calls == 2


class TestAdapterCatalog:
    """Test catalog reads through a concrete adapter."""

    @pytest.mark.asyncio
    async def test_sorted_newest_first(self, http, models_cache, clock):
        """Test live models are ordered by creation time, then priority."""
        http.reply("GET", "/models", {"data": [
            {"id": "gpt-4", "created": 1687882411},
            {"id": "gpt-4o", "created": 1715367049},
            {"id": "gpt-3.5-turbo", "created": 1677610602},
            {"id": "gpt-4o-mini"},
            {"id": "dall-e-3", "created": 1698785189},
            {"id": "whisper-1", "created": 1677532384},
        ]})
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)

        result = await adapter.get_catalog("sk-test")
        assert result.source == CatalogSource.API
        assert [m.id for m in result.models] == ["gpt-4o", "gpt-4", "gpt-3.5-turbo", "gpt-4o-mini"]
        assert result.models[0].name == "GPT-4o"
        assert http.calls[0].headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_fallback_models_are_described(self, http, models_cache, clock):
        """Test fallback models carry the static table data."""
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)
        result = await adapter.get_catalog(None)

        assert result.source == CatalogSource.FALLBACK
        gpt4 = next(m for m in result.models if m.id == "gpt-4")
        assert gpt4.context_length == 8192
        assert gpt4.pricing.input == 30
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_unwritable_cache_still_returns_live_models(self, http, clock, tmp_path):
        """Test live models are returned when the cache file cannot be written."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        models_cache = ModelsCache(JsonFileStorage(blocker / "cache.json"), clock=clock)
        http.reply("GET", "/models", {"data": [
            {"id": "gpt-4o", "created": 1715367049},
            {"id": "gpt-4", "created": 1687882411},
        ]})
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)

        models = await adapter.get_available_models("sk-test")
        assert [m.id for m in models] == ["gpt-4o", "gpt-4"]
        assert models_cache.get_cache("openai") is None

        result = await adapter.get_catalog("sk-test")
        assert result.source == CatalogSource.MEMORY

    @pytest.mark.asyncio
    async def test_record_metadata(self, http, models_cache, clock):
        """Test vendor metadata is stored with the persistent record."""
        http.reply("GET", "/models", {"data": [
            {"type": "model", "id": "claude-3-5-sonnet-20241022", "display_name": "Claude 3.5 Sonnet",
             "created_at": "2024-10-22T00:00:00Z"},
        ]})
        adapter = AnthropicAdapter(http, models_cache=models_cache, clock=clock)
        await adapter.get_catalog("sk-ant-test")

        entry = models_cache.get_cache("anthropic")
        assert entry.metadata["api_version"] == "2023-06-01"
        assert adapter.get_cache_stats()["model_count"] == 1

    @pytest.mark.asyncio
    async def test_cache_stats_empty(self, http, models_cache, clock):
        """Test stats are None before anything is cached."""
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)
        assert adapter.get_cache_stats() is None


class TestAliasResolution:
    """Test resolving "latest" aliases against the catalog."""

    @pytest.mark.asyncio
    async def test_plain_id_untouched(self, http, models_cache, clock):
        """Test ids without "latest" are returned without a catalog read."""
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)
        assert await adapter.resolve_model_alias("gpt-4", "sk-test") == "gpt-4"
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_resolves_to_newest_match(self, http, models_cache, clock):
        """Test the newest catalog model containing the base name wins."""
        http.reply("GET", "/models", {"data": [
            {"id": "gpt-4o-2024-05-13", "created": 1715367049},
            {"id": "gpt-4o-2024-08-06", "created": 1722814719},
            {"id": "gpt-3.5-turbo", "created": 1677610602},
        ]})
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)

        assert await adapter.resolve_model_alias("gpt-4o-latest", "sk-test") == "gpt-4o-2024-08-06"

    @pytest.mark.asyncio
    async def test_alias_table(self, http, models_cache, clock):
        """Test the static alias table is used when nothing in the catalog matches."""
        http.reply("GET", "/models", {"data": [
            {"type": "model", "id": "claude-3-5-sonnet-20241022"},
        ]})
        adapter = AnthropicAdapter(http, models_cache=models_cache, clock=clock)

        assert await adapter.resolve_model_alias("claude-opus-latest", "sk-ant-test") == "claude-opus-4-20250514"

    @pytest.mark.asyncio
    async def test_bare_latest_not_matched(self, http, models_cache, clock):
        """Test a bare "latest" alias does not resolve to an arbitrary catalog model."""
        http.reply("GET", "/models", {"data": [
            {"id": "gpt-4o-2024-08-06", "created": 1722814719},
            {"id": "gpt-3.5-turbo", "created": 1677610602},
        ]})
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)

        assert await adapter.resolve_model_alias("latest", "sk-test") == "latest"

    @pytest.mark.asyncio
    async def test_unresolvable_alias(self, http, models_cache, clock):
        """Test an unknown alias is returned unchanged."""
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock)
        assert await adapter.resolve_model_alias("davinci-latest") == "davinci-latest"

    @pytest.mark.asyncio
    async def test_send_request_resolves_alias(self, http, models_cache, clock):
        """Test generation calls use the resolved model id."""
        http.reply("GET", "/models", {"data": [
            {"id": "gpt-4o-2024-08-06", "created": 1722814719},
        ]})
        http.reply("POST", "/chat/completions", {
            "choices": [{"message": {"content": "ok"}, "finish_reason": "stop"}],
        })
        adapter = OpenAIAdapter(http, models_cache=models_cache, clock=clock, api_key="sk-test")

        response = await adapter.send_request("Hello", {"model": "gpt-4o-latest"})
        assert response.success
        assert response.model == "gpt-4o-2024-08-06"
        assert http.calls_to("/chat/completions")[0].body["model"] == "gpt-4o-2024-08-06"
