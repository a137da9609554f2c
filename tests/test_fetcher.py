"""Tests for the httpx-based fetch backend."""
from __future__ import annotations

import httpx
import pytest

from crawl_scheduler.devices import DEVICES
from crawl_scheduler.exceptions import FetchError
from crawl_scheduler.fetcher import HttpFetchBackend
from crawl_scheduler.models import RequestOptions

PAGE = """\
<html>
  <head>
    <title> Example page </title>
    <meta name="description" content="A page for tests">
  </head>
  <body>
    <a href="/about">About</a>
    <a href="about#team">Team</a>
    <a href="https://other.test/">Other</a>
    <a href="mailto:someone@example.test">Mail</a>
    <a href="/files/report.pdf">Report</a>
    <a href="#top">Top</a>
  </body>
</html>
"""


def handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/old":
        return httpx.Response(301, headers={"location": "/"})
    if path == "/broken":
        return httpx.Response(500, text="oops")
    if path == "/down":
        raise httpx.ConnectError("connection refused", request=request)
    if path == "/echo":
        return httpx.Response(200, json={"links": ["/about"]})
    return httpx.Response(
        200,
        html=PAGE,
        headers={"set-cookie": "session=abc; Path=/"},
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def backend() -> HttpFetchBackend:
    """HTTP backend served by a mock transport."""
    return HttpFetchBackend(user_agent="TestBot/1.0", transport=httpx.MockTransport(handler))


class TestHttpFetcher:
    """Result building from HTTP responses."""

    @pytest.mark.asyncio
    async def test_html_page(self, backend: HttpFetchBackend):
        """Test extraction, links and cookies for an HTML page."""
        options = RequestOptions(url="http://example.test/")
        result = await backend.open(options, 1, None).crawl()
        await backend.close()

        assert result.response.ok is True
        assert result.response.status == 200
        assert result.result == {"title": "Example page", "description": "A page for tests"}
        assert result.links == ["http://example.test/about", "https://other.test/"]
        assert result.cookies[0]["name"] == "session"
        assert result.cookies[0]["value"] == "abc"
        assert result.redirect_chain == []
        assert result.options is options

    @pytest.mark.asyncio
    async def test_redirect_chain(self, backend: HttpFetchBackend):
        """Test redirects are followed and recorded."""
        result = await backend.open(RequestOptions(url="http://example.test/old"), 2, "http://example.test/x").crawl()
        await backend.close()

        assert result.response.url == "http://example.test/"
        assert [(hop.url, hop.status) for hop in result.redirect_chain] == [("http://example.test/old", 301)]
        assert result.depth == 2
        assert result.previous_url == "http://example.test/x"

    @pytest.mark.asyncio
    async def test_error_status_is_a_result(self, backend: HttpFetchBackend):
        """Test a 500 response is returned, not raised."""
        result = await backend.open(RequestOptions(url="http://example.test/broken"), 1, None).crawl()
        await backend.close()

        assert result.response.ok is False
        assert result.response.status == 500
        assert result.links == []
        assert result.result is None

    @pytest.mark.asyncio
    async def test_transport_failure_raises_fetch_error(self, backend: HttpFetchBackend):
        """Test connection errors become FetchError."""
        with pytest.raises(FetchError) as exc_info:
            await backend.open(RequestOptions(url="http://example.test/down"), 1, None).crawl()
        await backend.close()

        assert exc_info.value.url == "http://example.test/down"

    @pytest.mark.asyncio
    async def test_non_html_response(self, backend: HttpFetchBackend):
        """Test non-HTML bodies are not parsed for links or content."""
        result = await backend.open(RequestOptions(url="http://example.test/echo"), 1, None).crawl()
        await backend.close()

        assert result.response.headers["content-type"] == "application/json"
        assert result.result is None
        assert result.links == []

    @pytest.mark.asyncio
    async def test_headers_reach_the_server(self):
        """Test the outgoing request carries the resolved headers."""
        seen: list[httpx.Request] = []

        def capture(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        backend = HttpFetchBackend(user_agent="TestBot/1.0", transport=httpx.MockTransport(capture))
        await backend.open(
            RequestOptions(
                url="http://example.test/",
                device="iPad",
                cookies=[{"name": "a", "value": "1"}, {"name": "b", "value": "2"}],
                extra_headers={"Accept-Language": "fr"},
            ),
            1,
            None,
        ).crawl()
        await backend.open(RequestOptions(url="http://example.test/plain"), 1, None).crawl()
        await backend.close()

        assert seen[0].headers["user-agent"] == DEVICES["iPad"].user_agent
        assert seen[0].headers["cookie"] == "a=1; b=2"
        assert seen[0].headers["accept-language"] == "fr"
        assert seen[1].headers["user-agent"] == "TestBot/1.0"

    @pytest.mark.asyncio
    async def test_custom_extract(self):
        """Test a custom extractor replaces the default."""
        backend = HttpFetchBackend(
            transport=httpx.MockTransport(handler),
            extract=lambda soup, response: [a["href"] for a in soup.find_all("a")],
        )
        result = await backend.open(RequestOptions(url="http://example.test/"), 1, None).crawl()
        await backend.close()

        assert result.result[0] == "/about"

    @pytest.mark.asyncio
    async def test_close_notifies_disconnect(self):
        """Test closing the backend runs disconnect callbacks once."""
        backend = HttpFetchBackend(transport=httpx.MockTransport(handler))
        calls = []
        backend.on_disconnect(lambda: calls.append("bye"))
        await backend.close()
        await backend.close()

        assert calls == ["bye"]
        assert backend.user_agent()
