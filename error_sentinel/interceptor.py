"""httpx interception: reports failed calls made through a wrapped client.

The interceptor is an explicit collaborator: it wraps a transport and holds a
reference to the engine. Nothing is patched globally.
"""

import logging
from typing import Optional

import httpx

from error_sentinel.config import SentinelConfig
from error_sentinel.engine import SentinelEngine

logger = logging.getLogger(__name__)


def extract_endpoint(url, base_url: Optional[str] = None) -> str:
    """Return the path component of *url*, resolving against *base_url* if relative."""
    try:
        parsed = httpx.URL(str(url))
        if not parsed.is_absolute_url and base_url:
            parsed = httpx.URL(base_url).join(parsed)
        return parsed.path or "/"
    except httpx.InvalidURL:
        return str(url)


class InterceptingTransport(httpx.AsyncBaseTransport):
    """Transport wrapper that reports 4xx/5xx responses and network failures."""

    def __init__(self, engine: SentinelEngine, wrapped: Optional[httpx.AsyncBaseTransport] = None):
        self._engine = engine
        self._wrapped = wrapped or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        endpoint = extract_endpoint(request.url)
        method = request.method.upper()

        try:
            response = await self._wrapped.handle_async_request(request)
        except httpx.TransportError as exc:
            self._engine.report(endpoint, method, 0, str(exc) or "Network error")
            raise

        if response.status_code >= 400:
            self._engine.report(
                endpoint,
                method,
                response.status_code,
                await self._read_payload(response),
                self._capture_headers(response),
            )
        return response

    async def _read_payload(self, response: httpx.Response) -> Optional[str]:
        try:
            await response.aread()
            return response.text
        except httpx.HTTPError as exc:
            logger.debug("Could not read error response body: %s", exc)
            return None

    def _capture_headers(self, response: httpx.Response) -> Optional[dict]:
        names = self._engine.get_capture_headers()
        if not names:
            return None
        return {name: response.headers[name] for name in names if name in response.headers}

    async def aclose(self) -> None:
        await self._wrapped.aclose()


def intercepted_client(
    engine: SentinelEngine,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **client_kwargs,
) -> httpx.AsyncClient:
    """Build an AsyncClient whose requests are observed by *engine*."""
    return httpx.AsyncClient(
        transport=InterceptingTransport(engine, transport), **client_kwargs
    )


async def create_sentinel(config: SentinelConfig, **client_kwargs):
    """Create and start an engine, plus a client wired to it when enabled.

    Returns ``(engine, client)``.
    """
    engine = SentinelEngine(config)
    await engine.start()
    if config.enabled:
        client = intercepted_client(engine, **client_kwargs)
    else:
        client = httpx.AsyncClient(**client_kwargs)
    return engine, client
