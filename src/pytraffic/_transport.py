"""Remote row store access over a PostgREST-compatible REST API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pytraffic._constants import STREAM_ORDER_COLUMNS, STREAM_TABLES, USER_AGENT, Stream
from pytraffic._redact import redact_for_log
from pytraffic.config import TrafficConfig
from pytraffic.exceptions import TrafficQueryError, TrafficTransportError

_logger = logging.getLogger(__name__)


class DataSource(Protocol):
    """Structural interface for point queries and appends.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestDataSource`) concrete.
    """

    async def query_latest(
        self,
        stream: Stream,
        *,
        limit: int,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent *limit* rows of *stream*, newest first."""
        ...

    async def insert(self, stream: Stream, record: Mapping[str, Any]) -> None:
        ...


class RestDataSource:
    """Reads and appends rows through ``/rest/v1/<table>``."""

    def __init__(self, config: TrafficConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.api_key:
            headers["apikey"] = self._config.api_key
            headers["authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _url(self, stream: Stream) -> str:
        return f"{self._config.base_url.rstrip('/')}/rest/v1/{STREAM_TABLES[stream]}"

    async def query_latest(
        self,
        stream: Stream,
        *,
        limit: int,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch the newest *limit* rows of *stream*.

        Raises
        ------
        TrafficTransportError
            Network failure, non-2xx status or a body that is not JSON.
        TrafficQueryError
            The body is JSON but not a list of row objects.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        column = order_by or STREAM_ORDER_COLUMNS[stream]
        url = self._url(stream)
        params = {"select": "*", "order": f"{column}.desc", "limit": str(limit)}

        _logger.debug("GET %s params=%s headers=%s", url, params, redact_for_log(self._headers()))
        text = await self._request("GET", url, stream, params=params)

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TrafficTransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                endpoint=url,
            ) from exc

        if not isinstance(body, list):
            raise TrafficQueryError(f"Expected a list of rows from {url}, got {type(body).__name__}", endpoint=url)
        rows = [row for row in body if isinstance(row, dict)]
        if len(rows) != len(body):
            _logger.debug("Dropped %d non-object rows from %s", len(body) - len(rows), url)
        return rows

    async def insert(self, stream: Stream, record: Mapping[str, Any]) -> None:
        """Append one row to *stream*."""
        url = self._url(stream)
        _logger.debug("POST %s body=%s headers=%s", url, dict(record), redact_for_log(self._headers()))
        await self._request("POST", url, stream, payload=dict(record), extra_headers={"prefer": "return=minimal"})

    async def _request(
        self,
        method: str,
        url: str,
        stream: Stream,
        *,
        params: Mapping[str, str] | None = None,
        payload: Mapping[str, Any] | None = None,
        extra_headers: Mapping[str, str] | None = None,
    ) -> str:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)
        data = json.dumps(payload, separators=(",", ":"), default=str) if payload is not None else None
        try:
            async with self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                try:
                    text = await resp.text()
                except UnicodeDecodeError as exc:
                    raise TrafficTransportError(
                        f"Undecodable body from {STREAM_TABLES[stream]} (HTTP {resp.status})",
                        status_code=resp.status,
                        endpoint=url,
                    ) from exc
                if not 200 <= resp.status < 300:
                    raise TrafficTransportError(
                        f"HTTP {resp.status} from {STREAM_TABLES[stream]}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except TrafficTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TrafficTransportError(
                f"Request to {url} failed: {exc}",
                endpoint=url,
            ) from exc
        return text
