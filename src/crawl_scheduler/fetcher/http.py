"""Plain HTTP fetch backend built on httpx and BeautifulSoup.

No JavaScript is executed: the fetcher sees the HTML the server sends.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
from bs4 import BeautifulSoup

from ..config import SETTINGS
from ..devices import resolve_user_agent
from ..exceptions import FetchError
from ..helpers import unique_links
from ..logging import get_logger
from ..models import CrawlResult, RedirectHop, RequestOptions, ResponseInfo
from .base import FetchBackend, Fetcher

logger = get_logger(__name__)

Extractor = Callable[[BeautifulSoup, httpx.Response], Any]


def default_extract(soup: BeautifulSoup, response: httpx.Response) -> dict[str, str | None]:
    """Page title and meta description."""
    title = soup.title.get_text(strip=True) if soup.title else None
    meta = soup.find("meta", attrs={"name": "description"})
    description = meta.get("content") if meta else None
    return {"title": title or None, "description": description}


def _cookie_header(cookies: list[dict[str, Any]]) -> str:
    return "; ".join(f"{cookie['name']}={cookie['value']}" for cookie in cookies if "name" in cookie)


class HttpFetcher(Fetcher):
    """One GET request through the backend's shared client."""

    def __init__(
        self,
        backend: HttpFetchBackend,
        options: RequestOptions,
        depth: int,
        previous_url: str | None,
    ) -> None:
        super().__init__(options, depth, previous_url)
        self._backend = backend

    async def crawl(self) -> CrawlResult:
        options = self.options
        headers = dict(options.extra_headers)
        headers["User-Agent"] = resolve_user_agent(options, self._backend.user_agent())
        if options.cookies:
            headers["Cookie"] = _cookie_header(options.cookies)

        request_kwargs: dict[str, Any] = {"headers": headers}
        if options.timeout is not None:
            request_kwargs["timeout"] = options.timeout

        try:
            response = await self._backend.client.get(options.url, **request_kwargs)
        except httpx.HTTPError as exc:
            raise FetchError(str(exc) or exc.__class__.__name__, options.url) from exc

        logger.debug("fetcher.response", url=options.url, status=response.status_code)
        final_url = str(response.url)
        result: Any = None
        links: list[str] = []
        if "html" in response.headers.get("content-type", ""):
            soup = BeautifulSoup(response.text, "html.parser")
            result = self._backend.extract(soup, response)
            hrefs = (anchor.get("href") for anchor in soup.find_all("a", href=True))
            links = unique_links(hrefs, final_url)

        return CrawlResult(
            options=options,
            depth=self.depth,
            previous_url=self.previous_url,
            response=ResponseInfo(
                ok=response.is_success,
                status=response.status_code,
                url=final_url,
                headers=dict(response.headers),
            ),
            redirect_chain=[
                RedirectHop(url=str(hop.url), status=hop.status_code) for hop in response.history
            ],
            cookies=[
                {
                    "name": cookie.name,
                    "value": cookie.value,
                    "domain": cookie.domain,
                    "path": cookie.path,
                    "expires": cookie.expires,
                    "secure": cookie.secure,
                }
                for cookie in response.cookies.jar
            ],
            result=result,
            links=links,
        )


class HttpFetchBackend(FetchBackend):
    """Shares one ``httpx.AsyncClient`` across all fetch attempts.

    Args:
        user_agent: Default user agent.
        timeout: Client-wide timeout in seconds; requests override it with
            their own ``timeout``.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
        client: Pre-built client; the caller keeps ownership.
        extract: Called with the parsed page and the response for HTML
            responses; its return value becomes ``CrawlResult.result``.
    """

    def __init__(
        self,
        *,
        user_agent: str = SETTINGS.user_agent,
        timeout: float = SETTINGS.timeout,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
        extract: Extractor = default_extract,
    ) -> None:
        super().__init__()
        self._user_agent = user_agent
        self._timeout = timeout
        self._transport = transport
        self._client = client
        self._owns_client = client is None
        self.extract = extract

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def open(self, options: RequestOptions, depth: int, previous_url: str | None) -> HttpFetcher:
        return HttpFetcher(self, options, depth, previous_url)

    def user_agent(self) -> str:
        return self._user_agent

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
        await super().close()
