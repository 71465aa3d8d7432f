"""
Top-level test configuration for tfconsole.
"""

import asyncio
import json
import os
from collections.abc import AsyncGenerator, AsyncIterator, Callable

# Ensure test-friendly defaults
os.environ.setdefault("TFCONSOLE_JSON_LOGS", "false")
os.environ.setdefault("TFCONSOLE_LOG_LEVEL", "DEBUG")
os.environ.setdefault("TFCONSOLE_CONFIG_FILE", "/nonexistent/tfconsole.yaml")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from tfconsole.client.remote import RemoteOperationClient  # noqa: E402

BASE_URL = "http://backend.test"

Responder = Callable[[httpx.Request], httpx.Response]


class ChunkedStream(httpx.AsyncByteStream):
    """Response body that yields the given chunks, optionally pausing or failing."""

    def __init__(
        self,
        chunks: list[bytes],
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.chunks = chunks
        self.error = error
        self.gate = gate

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for index, chunk in enumerate(self.chunks):
            yield chunk
            if index == 0 and self.gate is not None:
                await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        pass


class FakeBackend:
    """In-memory stand-in for the backend API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Responder] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        return responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def route(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method, path)] = responder

    def json(self, method: str, path: str, payload: object, status: int = 200) -> None:
        self.route(method, path, lambda request: httpx.Response(status, json=payload))

    def stream(
        self,
        path: str,
        chunks: list[bytes | str],
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        raw = [c.encode("utf-8") if isinstance(c, str) else c for c in chunks]
        self.route(
            "POST",
            path,
            lambda request: httpx.Response(
                200,
                headers={"content-type": "text/plain; charset=utf-8"},
                stream=ChunkedStream(raw, error=error, gate=gate),
            ),
        )

    def error(self, method: str, path: str, status: int, body: object = None) -> None:
        if body is None:
            self.route(method, path, lambda request: httpx.Response(status, text="upstream failure"))
        else:
            self.json(method, path, body, status=status)

    def calls(self, path: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.path == path and (method is None or r.method == method)
        ]

    def body_of(self, request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend: FakeBackend) -> AsyncGenerator[RemoteOperationClient, None]:
    remote = RemoteOperationClient(base_url=BASE_URL, auth_token="", transport=backend.transport)
    yield remote
    await remote.aclose()
