"""
Tests for InterceptorPipeline.
"""
import httpx
import pytest

from fetch_resilience import InterceptorPipeline, RequestConfig

from conftest import FakeTransport


def add_header(name: str, value: str):
    return lambda config: config.with_headers({name: value})


class TestRequestChain:
    """Tests for request interceptors."""

    async def test_applied_in_registration_order(self) -> None:
        """Should feed each interceptor the previous one's output."""
        pipeline = InterceptorPipeline()
        pipeline.add_request_interceptor(add_header("X-Order", "first"))
        pipeline.add_request_interceptor(
            lambda config: config.with_headers({"X-Order": config.headers["X-Order"] + ",second"})
        )
        transport = FakeTransport()

        await pipeline.intercept("/u", RequestConfig(), transport)

        _, sent = transport.calls[0]
        assert sent.headers["X-Order"] == "first,second"

    async def test_original_config_untouched(self) -> None:
        """Should not modify the caller's config."""
        pipeline = InterceptorPipeline()
        pipeline.add_request_interceptor(add_header("Authorization", "Bearer t"))
        original = RequestConfig()

        await pipeline.intercept("/u", original, FakeTransport())

        assert "Authorization" not in original.headers

    async def test_empty_chain_is_identity(self) -> None:
        """Should send the config unchanged without interceptors."""
        transport = FakeTransport()
        config = RequestConfig(headers={"A": "1"})

        await InterceptorPipeline().intercept("/u", config, transport)

        assert transport.calls[0][1] is config

    async def test_raising_interceptor_aborts_pipeline(self) -> None:
        """Should propagate the error and skip the transport."""
        pipeline = InterceptorPipeline()

        def reject(config: RequestConfig) -> RequestConfig:
            raise PermissionError("no token")

        pipeline.add_request_interceptor(reject)
        transport = FakeTransport()

        with pytest.raises(PermissionError):
            await pipeline.intercept("/u", RequestConfig(), transport)

        assert transport.call_count == 0


class TestResponseChain:
    """Tests for response interceptors."""

    async def test_transforms_response_in_order(self) -> None:
        """Should fold response interceptors over the response."""
        pipeline = InterceptorPipeline()
        pipeline.add_response_interceptor(
            lambda response: httpx.Response(response.status_code, json={"wrapped": response.json()})
        )
        pipeline.add_response_interceptor(
            lambda response: httpx.Response(201, json=response.json())
        )

        response = await pipeline.intercept("/u", RequestConfig(), FakeTransport())

        assert response.status_code == 201
        assert response.json() == {"wrapped": {"ok": True}}


class TestRegistration:
    """Tests for adding and removing interceptors."""

    def test_remover_unregisters(self) -> None:
        """Should remove an interceptor through the returned function."""
        pipeline = InterceptorPipeline()
        interceptor = add_header("A", "1")
        remove = pipeline.add_request_interceptor(interceptor)

        remove()
        remove()

        assert pipeline.request_interceptors == []

    def test_clear(self) -> None:
        """Should drop both chains."""
        pipeline = InterceptorPipeline()
        pipeline.add_request_interceptor(add_header("A", "1"))
        pipeline.add_response_interceptor(lambda response: response)

        pipeline.clear()

        assert pipeline.request_interceptors == []
        assert pipeline.response_interceptors == []
