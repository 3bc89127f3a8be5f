"""
Tests for settings resolution and the engine factory.
"""
import httpx
import pytest
import respx
from pydantic import ValidationError

from fetch_resilience import (
    EngineSettings,
    MemoryDurableStore,
    RedisDurableStore,
    create_engine,
    resolve_settings,
)


class TestResolveSettings:
    """Tests for resolve_settings()."""

    def test_defaults(self) -> None:
        """Should fall back to defaults with an empty environment."""
        settings = resolve_settings(environ={})

        assert settings.concurrency == 3
        assert settings.retries == 3
        assert settings.backoff_seconds == 0.3
        assert settings.cache_ttl_seconds == 300.0
        assert settings.rate_limit is None
        assert settings.default_headers == {"Content-Type": "application/json"}

    def test_environment_values(self) -> None:
        """Should read FETCH_RESILIENCE_* variables."""
        settings = resolve_settings(
            environ={
                "FETCH_RESILIENCE_CONCURRENCY": "5",
                "FETCH_RESILIENCE_RETRIES": "1",
                "FETCH_RESILIENCE_RETRY_ON_STATUS": "502, 503",
                "FETCH_RESILIENCE_CACHE_ENABLED": "false",
                "FETCH_RESILIENCE_BASE_URL": "https://api.example.com",
            }
        )

        assert settings.concurrency == 5
        assert settings.retries == 1
        assert settings.retry_on_status == [502, 503]
        assert settings.cache_enabled is False
        assert settings.base_url == "https://api.example.com"

    def test_overrides_win_over_environment(self) -> None:
        """Should prefer explicit overrides."""
        settings = resolve_settings(
            {"concurrency": 1},
            environ={"FETCH_RESILIENCE_CONCURRENCY": "5"},
        )

        assert settings.concurrency == 1

    def test_empty_variable_ignored(self) -> None:
        """Should treat empty variables as unset."""
        settings = resolve_settings(environ={"FETCH_RESILIENCE_RATE_LIMIT": ""})

        assert settings.rate_limit is None

    def test_invalid_value_rejected(self) -> None:
        """Should raise ValidationError for out-of-range values."""
        with pytest.raises(ValidationError):
            resolve_settings({"concurrency": 0}, environ={})

    def test_malformed_status_list_rejected(self) -> None:
        """Should raise ValidationError for a non-numeric status entry."""
        with pytest.raises(ValidationError):
            resolve_settings(environ={"FETCH_RESILIENCE_RETRY_ON_STATUS": "502,50x"})


class TestToEngineConfig:
    """Tests for EngineSettings.to_engine_config()."""

    def test_maps_fields(self) -> None:
        """Should build the dataclass configuration."""
        config = EngineSettings(
            concurrency=2,
            retries=4,
            retry_on_status=[503],
            cache_ttl_seconds=60,
            rate_limit=10,
            rate_limit_interval_seconds=2,
        ).to_engine_config()

        assert config.queue.concurrency == 2
        assert config.retry.retries == 4
        assert config.retry.retry_on_status == [503]
        assert config.cache.ttl_seconds == 60
        assert config.rate_limit.limit == 10
        assert config.rate_limit.interval_seconds == 2

    def test_no_rate_limit_by_default(self) -> None:
        """Should leave rate limiting off."""
        assert EngineSettings().to_engine_config().rate_limit is None

    def test_base_url_stays_with_the_transport(self) -> None:
        """Should keep base_url out of the engine configuration."""
        config = EngineSettings(base_url="https://api.example.com").to_engine_config()

        assert not hasattr(config, "base_url")


class TestCreateEngine:
    """Tests for create_engine()."""

    async def test_fetches_through_httpx_client(self) -> None:
        """Should wire settings and client into a working engine."""
        router = respx.MockRouter()
        router.get("https://api.example.com/users/1").mock(
            return_value=httpx.Response(200, json={"id": 1})
        )
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(router.async_handler),
            base_url="https://api.example.com",
        )

        engine = create_engine(EngineSettings(retries=0), client=client)
        data = await engine.fetch_data("/users/1")
        await engine.aclose()

        assert data == {"id": 1}
        assert isinstance(engine.offline.store, MemoryDurableStore)
        await client.aclose()

    async def test_redis_store_when_url_set(self) -> None:
        """Should back the offline store with Redis when configured."""
        engine = create_engine(
            EngineSettings(redis_url="redis://localhost:6379/0", offline_key_prefix="app:")
        )

        assert isinstance(engine.offline.store, RedisDurableStore)
        assert engine.offline.store._key_prefix == "app:"
        await engine.aclose()
