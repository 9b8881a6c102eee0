from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx


class MockAsyncResponse:
    """Queued upstream answer, turned into a real ``httpx.Response`` when served."""

    def __init__(
        self,
        json_data: Any = None,
        *,
        status_code: int = 200,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.json_data = json_data
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}

    def build(self, request: httpx.Request) -> httpx.Response:
        if self.text is not None:
            return httpx.Response(
                self.status_code, text=self.text, headers=self.headers, request=request
            )
        return httpx.Response(
            self.status_code, json=self.json_data, headers=self.headers, request=request
        )


class MockAsyncClient:
    """Stands in for the pooled ``httpx.AsyncClient``.

    Each ``get`` pops the next queued item: a :class:`MockAsyncResponse` is
    served, an exception instance is raised. Calls are recorded in ``calls``.
    """

    def __init__(self, responses: Iterable[Union[MockAsyncResponse, Exception]]) -> None:
        self._responses: List[Union[MockAsyncResponse, Exception]] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    @property
    def remaining(self) -> int:
        return len(self._responses)

    async def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **_kwargs,
    ) -> httpx.Response:
        if not self._responses:
            raise AssertionError("No more mock responses available")

        request = httpx.Request("GET", url, params=params, headers=headers)
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {}), "request": request})

        item = self._responses.pop(0)
        if isinstance(item, Exception):
            if isinstance(item, httpx.RequestError):
                item.request = request
            raise item
        return item.build(request)


def run(coro):
    """Helper to run async functions in synchronous tests."""
    return asyncio.run(coro)
