"""
httpx-backed transport capability.
"""
import logging
from typing import Any, Optional

import httpx

from .abort import AbortSignal, run_with_signal
from .errors import TransportError
from .types import RequestConfig

logger = logging.getLogger("fetch_resilience.transport")


class HttpxTransport:
    """
    Sends a single request through an httpx.AsyncClient.

    httpx timeouts and connection failures are raised as TransportError with
    the httpx exception chained as __cause__. The response body is read
    before returning so the response can be shared between callers.

    Example:
        transport = HttpxTransport(base_url="https://api.example.com")
        response = await transport("/users/1", RequestConfig())
        await transport.aclose()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: str = "",
        timeout: float = 10.0,
        **client_kwargs: Any,
    ) -> None:
        """
        Create a new HttpxTransport.

        Args:
            client: Existing client to send through (not closed by aclose)
            base_url: Base URL for a client created here
            timeout: Default timeout for a client created here (seconds)
            **client_kwargs: Additional arguments for httpx.AsyncClient
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            **client_kwargs,
        )

    async def __call__(
        self,
        url: str,
        config: RequestConfig,
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        return await run_with_signal(self._send(url, config), signal, url)

    async def _send(self, url: str, config: RequestConfig) -> httpx.Response:
        kwargs: dict = {
            "headers": dict(config.headers),
            "params": dict(config.params) if config.params else None,
        }
        if config.body is not None:
            kwargs["content"] = config.body
        elif config.json is not None:
            kwargs["json"] = config.json
        if config.timeout is not None:
            kwargs["timeout"] = config.timeout

        logger.debug(f"HttpxTransport: {config.method} {url}")
        try:
            response = await self._client.request(config.method, url, **kwargs)
            await response.aread()
        except httpx.TimeoutException as error:
            raise TransportError(f"Request timed out: {error}", url) from error
        except httpx.TransportError as error:
            raise TransportError(f"Network error: {error}", url) from error

        logger.debug(f"HttpxTransport: {response.status_code} {url}")
        return response

    async def aclose(self) -> None:
        """Close the underlying client if it was created here."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
