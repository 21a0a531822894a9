"""
Unit tests for the upstream API client.
"""

import asyncio
import gzip
import time

import httpx
import pytest

from shared.errors import UpstreamBodyReadError, UpstreamTransportError
from service_proxy.app.adapters.upstream_client import REQUEST_TIMEOUT_SECONDS, UpstreamClient, build_http_client


class BrokenStream(httpx.AsyncByteStream):
    """Body stream that dies after the headers arrived."""

    async def __aiter__(self):
        yield b'{"partial'
        raise httpx.ReadError("connection reset by peer")


class TrickleStream(httpx.AsyncByteStream):
    """Body stream that sends one byte at a time with a pause between each."""

    def __init__(self, chunks: int, delay: float):
        self.chunks = chunks
        self.delay = delay
        self.closed = False

    async def __aiter__(self):
        for _ in range(self.chunks):
            await asyncio.sleep(self.delay)
            yield b"x"

    async def aclose(self):
        self.closed = True


def make_client(handler, **kwargs) -> UpstreamClient:
    return UpstreamClient(
        "https://upstream.test",
        "secret-key",
        client=build_http_client(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestUpstreamClient:
    """Test cases for UpstreamClient."""

    def test_build_url(self):
        client = UpstreamClient("https://upstream.test", "k", client=httpx.AsyncClient())

        assert client.build_url("/foo") == "https://upstream.test/foo"
        assert client.build_url("/foo", "a=1&b=2") == "https://upstream.test/foo?a=1&b=2"
        assert client.build_url("/foo", "") == "https://upstream.test/foo"

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        """Status, body and content type are captured verbatim."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                content=b'{"tracks":[]}',
                headers={"Content-Type": "application/json; charset=utf-8"},
            )

        client = make_client(handler)
        result = await client.fetch("/api/tracks", "artist=1")

        assert result.status == 200
        assert result.body == b'{"tracks":[]}'
        assert result.content_type == "application/json; charset=utf-8"

        assert len(seen) == 1
        assert seen[0].method == "GET"
        assert str(seen[0].url) == "https://upstream.test/api/tracks?artist=1"
        assert seen[0].headers["X-Api-Key"] == "secret-key"

    @pytest.mark.asyncio
    async def test_fetch_without_content_type(self):
        client = make_client(lambda request: httpx.Response(204))
        result = await client.fetch("/empty")

        assert result.status == 204
        assert result.body == b""
        assert result.content_type is None

    @pytest.mark.asyncio
    async def test_fetch_passes_error_status_through(self):
        """Non-2xx replies are results, not errors."""
        client = make_client(lambda request: httpx.Response(404, text="not here"))
        result = await client.fetch("/missing")

        assert result.status == 404
        assert result.body == b"not here"

    @pytest.mark.asyncio
    async def test_fetch_decodes_compressed_body(self):
        payload = b'{"hello": "world"}'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=gzip.compress(payload),
                headers={"Content-Encoding": "gzip", "Content-Type": "application/json"},
            )

        result = await make_client(handler).fetch("/gz")

        assert result.body == payload

    @pytest.mark.asyncio
    async def test_fetch_non_utf8_body_is_opaque(self):
        raw = bytes(range(256))
        client = make_client(lambda request: httpx.Response(200, content=raw, headers={"Content-Type": "image/png"}))
        result = await client.fetch("/img")

        assert result.body == raw

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamTransportError) as exc_info:
            await make_client(handler).fetch("/foo")

        assert exc_info.value.status_code == 502
        assert exc_info.value.public_message == "Upstream request failed"
        assert exc_info.value.url == "https://upstream.test/foo"

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamTransportError):
            await make_client(handler).fetch("/slow")

    @pytest.mark.asyncio
    async def test_body_read_failure(self):
        client = make_client(lambda request: httpx.Response(200, stream=BrokenStream()))

        with pytest.raises(UpstreamBodyReadError) as exc_info:
            await client.fetch("/broken")

        assert exc_info.value.public_message == "Failed to read response"

    @pytest.mark.asyncio
    async def test_no_retry_on_failure(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(UpstreamTransportError):
            await make_client(handler).fetch("/foo")

        assert len(attempts) == 1


    def test_default_request_deadline(self):
        client = UpstreamClient("https://upstream.test", "k", client=build_http_client())

        assert client.request_timeout == REQUEST_TIMEOUT_SECONDS == 30.0
        assert client.client.timeout.connect == 10.0

    @pytest.mark.asyncio
    async def test_deadline_before_headers_is_transport_failure(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        start = time.monotonic()
        with pytest.raises(UpstreamTransportError) as exc_info:
            await make_client(handler, request_timeout=0.2).fetch("/stalled")

        assert time.monotonic() - start < 2
        assert exc_info.value.public_message == "Upstream request failed"

    @pytest.mark.asyncio
    async def test_deadline_covers_slow_body(self):
        """A body trickling in under every per-read timeout still hits the overall deadline."""
        stream = TrickleStream(chunks=40, delay=0.05)
        client = make_client(lambda request: httpx.Response(200, stream=stream), request_timeout=0.5)

        start = time.monotonic()
        with pytest.raises(UpstreamBodyReadError) as exc_info:
            await client.fetch("/trickle")

        assert time.monotonic() - start < 1.5
        assert exc_info.value.public_message == "Failed to read response"
        assert stream.closed

    @pytest.mark.asyncio
    async def test_slow_body_within_deadline_succeeds(self):
        stream = TrickleStream(chunks=4, delay=0.01)
        client = make_client(lambda request: httpx.Response(200, stream=stream), request_timeout=5)

        result = await client.fetch("/trickle")

        assert result.body == b"xxxx"
