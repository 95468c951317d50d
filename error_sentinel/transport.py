"""HTTP transport: posts error batches to the remote collector."""

import logging
from typing import Optional

import httpx

from error_sentinel.errors import DeliveryError
from error_sentinel.models import ErrorEvent

logger = logging.getLogger(__name__)


class HttpTransport:
    """Sends batches as ``POST {backend_url}/errors`` with a JSON body.

    A batch is attempted once; failures raise DeliveryError and are not retried.
    """

    def __init__(
        self,
        backend_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = f"{backend_url.rstrip('/')}/errors"
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0))

    @property
    def url(self) -> str:
        return self._url

    async def send(self, events: list[ErrorEvent]) -> None:
        body = {"errors": [event.to_dict() for event in events]}
        try:
            response = await self._client.post(self._url, json=body, headers=self._headers)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Request to {self._url} failed: {exc}") from exc

        if not response.is_success:
            raise DeliveryError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        logger.debug("Collector accepted %d error(s)", len(events))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
