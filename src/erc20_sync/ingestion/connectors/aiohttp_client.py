"""aiohttp-backed IHttpClient.

One ClientSession is opened lazily and reused for every call, so polling
the tip keeps its connection alive between cycles.
"""

import asyncio
from typing import Any

import aiohttp

from erc20_sync.config.value_objects import HttpClientConfig
from erc20_sync.infrastructure.observability import get_ingestion_logger
from erc20_sync.ingestion.ports.http import HttpResponse, IHttpClient
from erc20_sync.shared.exceptions import TransportError


class AiohttpClient(IHttpClient):
    def __init__(self, config: HttpClientConfig | None = None):
        self.config = config or HttpClientConfig()
        self._session: aiohttp.ClientSession | None = None
        self.log = get_ingestion_logger("aiohttp-transport")

    def _session_or_new(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.config.timeout,
                    connect=self.config.connect_timeout,
                )
            )
            self.log.debug("session_opened", timeout=self.config.timeout)
        return self._session

    async def post(
        self,
        url: str,
        data: Any | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """
        POST ``data`` as JSON.

        Non-200 bodies are kept as text. A 200 body that is not valid JSON is
        also kept as text so the caller can report it.

        Raises:
            TransportError: On connection errors and timeouts
        """
        session = self._session_or_new()
        options: dict[str, Any] = {"json": data, "headers": headers}
        if timeout is not None:
            options["timeout"] = aiohttp.ClientTimeout(total=timeout)

        try:
            async with session.post(url, **options) as resp:
                text = await resp.text()
                body: Any = text
                if resp.status == 200:
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        pass
                return HttpResponse(resp.status, body, dict(resp.headers), str(resp.url))
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request to {url} timed out", cause=e) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to {url} failed", cause=e) from e

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            self.log.debug("session_closed")
