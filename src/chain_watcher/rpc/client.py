"""JSON-RPC over HTTP with a rotating provider pool."""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any, Sequence

import httpx

from chain_watcher.errors import ConfigurationError, RpcError
from chain_watcher.interfaces.repositories import ProviderHealth

log = logging.getLogger(__name__)


class JsonRpcClient:
    """Sends JSON-RPC requests to the first healthy provider in ``urls``.

    A transport failure (timeout, connection error, HTTP 5xx, malformed body)
    moves the pool to the next provider and retries there, until every
    provider was tried once. JSON-RPC error objects are answers, not provider
    failures: they raise ``RpcError`` with the RPC code and are not retried.
    """

    def __init__(
        self,
        urls: Sequence[str],
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not urls:
            raise ConfigurationError("At least one RPC provider url is required")
        self._urls = [u.rstrip("/") for u in urls]
        self._current = 0
        self._ids = itertools.count(1)
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5))

    @property
    def urls(self) -> list[str]:
        return list(self._urls)

    @property
    def current_url(self) -> str:
        return self._urls[self._current]

    async def close(self) -> None:
        await self._client.aclose()

    # ── Requests ───────────────────────────────────────────

    async def call(self, method: str, params: list[Any] | dict[str, Any] | None = None) -> Any:
        payload = self._request(method, params)
        body = await self._with_rotation(lambda url: self._post(url, payload))
        return self._result(body, method)

    async def batch(self, calls: Sequence[tuple[str, list[Any]]]) -> list[Any]:
        """Send ``calls`` as one batch request; results keep the input order."""
        if not calls:
            return []
        payload = [self._request(method, params) for method, params in calls]
        body = await self._with_rotation(lambda url: self._post(url, payload))
        if not isinstance(body, list):
            raise RpcError("Batch response is not a list", url=self.current_url)

        by_id = {item.get("id"): item for item in body if isinstance(item, dict)}
        results = []
        for request in payload:
            item = by_id.get(request["id"])
            if item is None:
                raise RpcError(
                    f"Missing batch response for {request['method']}", url=self.current_url
                )
            results.append(self._result(item, request["method"]))
        return results

    async def call_on(self, url: str, method: str, params: list[Any] | None = None) -> Any:
        """Single request against one provider, bypassing rotation."""
        body = await self._post(url, self._request(method, params))
        return self._result(body, method)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """HTTP GET ``path`` on the current provider (Tendermint-style URI RPC)."""
        return await self._with_rotation(lambda url: self._get(url, path, params))

    async def get_on(self, url: str, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._get(url, path, params)

    async def probe(self, url: str, height_of: Any) -> ProviderHealth:
        """Time ``height_of(url)`` against one provider."""
        started = time.monotonic()
        try:
            height = await height_of(url)
        except (RpcError, httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            log.warning("Healthcheck of %s failed: %s", url, exc)
            return ProviderHealth(url=url, is_live=False)
        return ProviderHealth(
            url=url, is_live=True, height=height, latency=time.monotonic() - started
        )

    # ── Internals ──────────────────────────────────────────

    def _request(self, method: str, params: Any) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params if params is not None else [],
        }

    def _result(self, body: Any, method: str) -> Any:
        if not isinstance(body, dict):
            raise RpcError(f"Malformed response to {method}", url=self.current_url)
        if error := body.get("error"):
            if not isinstance(error, dict):
                raise RpcError(f"{method} failed: {error}", url=self.current_url)
            raise RpcError(
                f"{method} failed: {error.get('message', error)}",
                code=error.get("code"),
                url=self.current_url,
            )
        return body.get("result")

    async def _with_rotation(self, send: Any) -> Any:
        last_exc: Exception | None = None
        for _ in range(len(self._urls)):
            url = self.current_url
            try:
                return await send(url)
            except (httpx.TransportError, httpx.HTTPStatusError, ValueError) as exc:
                last_exc = exc
                log.warning("RPC provider %s failed: %s", url, exc)
                self._current = (self._current + 1) % len(self._urls)
        raise RpcError(f"All RPC providers failed: {last_exc}") from last_exc

    async def _post(self, url: str, payload: Any) -> Any:
        resp = await self._client.post(url, json=payload)
        resp.raise_for_status()
        return resp.json()

    async def _get(self, url: str, path: str, params: dict[str, Any] | None) -> Any:
        resp = await self._client.get(f"{url}/{path.lstrip('/')}", params=params)
        resp.raise_for_status()
        return resp.json()
