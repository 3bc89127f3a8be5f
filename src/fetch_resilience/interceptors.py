"""
Ordered request/response interceptor chains.
"""
import logging
from typing import Awaitable, Callable, List, Optional

import httpx

from .abort import AbortSignal
from .types import RequestConfig, RequestInterceptor, ResponseInterceptor

logger = logging.getLogger("fetch_resilience.interceptors")


class InterceptorPipeline:
    """
    Interceptor Pipeline

    Request interceptors transform the outgoing RequestConfig and response
    interceptors transform the received httpx.Response. Both chains are
    applied in registration order, each interceptor receiving the previous
    one's output. An interceptor signals failure by raising, which aborts
    the pipeline and propagates to the caller.

    Example:
        pipeline = InterceptorPipeline()
        pipeline.add_request_interceptor(
            lambda config: config.with_headers({"Authorization": "Bearer t"})
        )
        response = await pipeline.intercept("/users/1", RequestConfig(), send)
    """

    def __init__(self) -> None:
        self._request_interceptors: List[RequestInterceptor] = []
        self._response_interceptors: List[ResponseInterceptor] = []

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> Callable[[], None]:
        """
        Append a request interceptor.

        Returns:
            Function to remove the interceptor
        """
        self._request_interceptors.append(interceptor)
        return lambda: self._discard(self._request_interceptors, interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> Callable[[], None]:
        """
        Append a response interceptor.

        Returns:
            Function to remove the interceptor
        """
        self._response_interceptors.append(interceptor)
        return lambda: self._discard(self._response_interceptors, interceptor)

    @staticmethod
    def _discard(chain: list, interceptor: Callable) -> None:
        if interceptor in chain:
            chain.remove(interceptor)

    def apply_request(self, config: RequestConfig) -> RequestConfig:
        """Fold the request interceptors over a config."""
        for interceptor in list(self._request_interceptors):
            config = interceptor(config)
        return config

    def apply_response(self, response: httpx.Response) -> httpx.Response:
        """Fold the response interceptors over a response."""
        for interceptor in list(self._response_interceptors):
            response = interceptor(response)
        return response

    async def intercept(
        self,
        url: str,
        config: RequestConfig,
        send: Callable[[str, RequestConfig, Optional[AbortSignal]], Awaitable[httpx.Response]],
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        """
        Run the request chain, send, then run the response chain.

        Args:
            url: Request URL
            config: Original request configuration
            send: Capability that issues the final request
            signal: Optional abort signal handed to send

        Returns:
            The response after all response interceptors
        """
        final_config = self.apply_request(config)
        logger.debug(
            f"intercept: {final_config.method} {url} after "
            f"{len(self._request_interceptors)} request interceptor(s)"
        )
        response = await send(url, final_config, signal)
        return self.apply_response(response)

    @property
    def request_interceptors(self) -> List[RequestInterceptor]:
        return list(self._request_interceptors)

    @property
    def response_interceptors(self) -> List[ResponseInterceptor]:
        return list(self._response_interceptors)

    def clear(self) -> None:
        """Remove all interceptors."""
        self._request_interceptors.clear()
        self._response_interceptors.clear()
