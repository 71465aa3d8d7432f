"""
Remote operation client for the Terraform workspace backend.

Wraps an httpx.AsyncClient. Every backend call goes through ``invoke``,
which returns either a parsed JSON value or a live ``OperationStream``
depending on what the response declares. Non-2xx responses are turned
into RemoteOperationError using the backend's ``{"detail": ...}`` body
when it can be parsed. No retries: retrying is the caller's decision.
"""

import codecs
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from tfconsole.config import settings
from tfconsole.errors import RemoteOperationError, StreamError
from tfconsole.logging_config import get_logger

logger = get_logger(__name__)

_JSON_CONTENT_TYPES = ("application/json", "application/problem+json")


def generic_error_message(status: int) -> str:
    return f"Request failed with status {status}"


def error_from_response(response: httpx.Response) -> RemoteOperationError:
    """Build a RemoteOperationError from a non-2xx response whose body has been read."""
    status = response.status_code
    try:
        body = response.json()
    except (ValueError, UnicodeDecodeError):
        return RemoteOperationError(status, generic_error_message(status))

    detail = body.get("detail") if isinstance(body, dict) else None
    if detail is None or detail == "":
        return RemoteOperationError(status, generic_error_message(status))
    if not isinstance(detail, str):
        # FastAPI validation errors carry a list of error objects
        detail = json.dumps(detail)
    return RemoteOperationError(status, detail)


def transport_error(exc: Exception) -> RemoteOperationError:
    return RemoteOperationError(None, f"Network error: {str(exc) or type(exc).__name__}")


def is_json_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    return content_type in _JSON_CONTENT_TYPES or content_type.endswith("+json")


class StreamDecoder:
    """Incremental UTF-8 decoder whose state survives across chunks.

    A multi-byte character split over two chunks is held back until the
    remaining bytes arrive, then emitted whole.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def decode(self, chunk: bytes) -> str:
        return self._decoder.decode(chunk, final=False)

    def flush(self) -> str:
        return self._decoder.decode(b"", final=True)


@dataclass(frozen=True)
class StreamChunk:
    """One pull from an OperationStream."""

    text: str = ""
    done: bool = False


class OperationStream:
    """Pull-based reader over a streamed response body.

    ``pull()`` returns ``StreamChunk(text, done=False)`` for each decoded
    chunk and ``StreamChunk(done=True)`` once the body is exhausted. The
    stream is also an async iterator of text chunks. Concatenation is the
    caller's job.
    """

    def __init__(self, response: httpx.Response, path: str = "") -> None:
        self._response = response
        self._path = path
        self._decoder = StreamDecoder()
        self._chunks: AsyncIterator[bytes] | None = None
        self._done = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def done(self) -> bool:
        return self._done

    async def pull(self) -> StreamChunk:
        if self._done:
            return StreamChunk(done=True)
        if self._chunks is None:
            self._chunks = self._response.aiter_bytes()

        while True:
            try:
                raw = await anext(self._chunks)
            except StopAsyncIteration:
                tail = self._decoder.flush()
                await self.aclose()
                if tail:
                    return StreamChunk(text=tail)
                return StreamChunk(done=True)
            except (httpx.StreamError, httpx.TransportError) as e:
                await self.aclose()
                raise StreamError(f"Stream read failed: {str(e) or type(e).__name__}") from e

            text = self._decoder.decode(raw)
            if text:
                return StreamChunk(text=text)
            # Only a partial multi-byte sequence so far; keep reading.

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iter_text()

    async def _iter_text(self) -> AsyncIterator[str]:
        while True:
            chunk = await self.pull()
            if chunk.done:
                return
            yield chunk.text

    async def aclose(self) -> None:
        if not self._done:
            self._done = True
            await self._response.aclose()
            logger.debug("Stream closed", path=self._path)

    async def __aenter__(self) -> "OperationStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class RemoteOperationClient:
    """Async client for the backend API.

    The base URL, auth token and timeouts default to ``settings.api``. Pass
    ``transport`` to route requests through an httpx transport (tests use
    ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        auth_token: str | None = None,
        *,
        connect_timeout: float | None = None,
        request_timeout: float | None = None,
        stream_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cfg = settings.api
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self._auth_token = cfg.auth_token if auth_token is None else auth_token
        connect = cfg.connect_timeout_seconds if connect_timeout is None else connect_timeout
        request = cfg.request_timeout_seconds if request_timeout is None else request_timeout
        stream = cfg.stream_timeout_seconds if stream_timeout is None else stream_timeout
        self._json_timeout = httpx.Timeout(request, connect=connect)
        self._stream_timeout = httpx.Timeout(stream, connect=connect)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def invoke(
        self,
        path: str,
        payload: Any = None,
        *,
        method: str = "POST",
        params: dict[str, Any] | None = None,
        stream: bool = False,
    ) -> Any:
        """Call ``path`` and return parsed JSON or an OperationStream.

        The response declares which: JSON content types are parsed and the
        connection released; anything else is handed back as a live stream
        the caller must drain or close. ``stream=True`` only selects the
        longer stream timeout for the request.
        """
        client = self._get_client()
        kwargs: dict[str, Any] = {"params": params}
        if payload is not None:
            kwargs["json"] = payload
        request = client.build_request(
            method,
            path,
            timeout=self._stream_timeout if stream else self._json_timeout,
            **kwargs,
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.warning("Backend unreachable", method=method, path=path, error=str(e))
            raise transport_error(e) from e

        if not response.is_success:
            try:
                await response.aread()
            except httpx.TransportError as e:
                raise transport_error(e) from e
            finally:
                await response.aclose()
            error = error_from_response(response)
            logger.warning(
                "Backend returned error",
                method=method,
                path=path,
                status=error.status,
                detail=error.detail,
            )
            raise error

        if not is_json_response(response):
            return OperationStream(response, path)

        try:
            body = await response.aread()
        except httpx.TransportError as e:
            raise transport_error(e) from e
        finally:
            await response.aclose()

        if not body.strip():
            return None
        try:
            return json.loads(body)
        except ValueError as e:
            raise RemoteOperationError(response.status_code, "Invalid JSON in response") from e

    async def request_json(
        self,
        method: str,
        path: str,
        payload: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Call an endpoint that is expected to answer with JSON."""
        result = await self.invoke(path, payload, method=method, params=params)
        if isinstance(result, OperationStream):
            # Tolerate backends that omit the JSON content type
            text = "".join([chunk async for chunk in result])
            if not text.strip():
                return None
            try:
                return json.loads(text)
            except ValueError as e:
                raise RemoteOperationError(result.status_code, "Invalid JSON in response") from e
        return result

    async def open_stream(self, path: str, payload: Any) -> OperationStream:
        """POST ``payload`` to ``path`` and return the streamed body.

        A JSON answer is wrapped as a single-chunk stream so callers always
        get a stream back.
        """
        result = await self.invoke(path, payload, stream=True)
        if isinstance(result, OperationStream):
            return result
        if result is None:
            raise StreamError("Response body is missing")
        text = result if isinstance(result, str) else json.dumps(result)
        return _static_stream(text, path)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteOperationClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _static_stream(text: str, path: str) -> OperationStream:
    response = httpx.Response(
        200,
        content=text.encode("utf-8"),
        headers={"content-type": "text/plain; charset=utf-8"},
    )
    return OperationStream(response, path)
