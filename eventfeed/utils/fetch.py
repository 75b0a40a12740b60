"""Page fetchers used by the enrichment batch.

The transport is chosen once, from settings, by ``build_fetcher``:

* ``static``   plain HTTP through :class:`HttpClient`
* ``rendered`` headless Chromium through playwright
* ``hybrid``   static first, rendered when the static page carries no event
  JSON-LD (client-side rendered listings)
"""
from __future__ import annotations
import logging
from typing import Callable, Optional, Protocol

from eventfeed.config import Settings
from eventfeed.utils.http import HttpClient
from eventfeed.utils.parse import has_event_json_ld
from eventfeed.utils.render import render_html

logger = logging.getLogger(__name__)


class PageFetcher(Protocol):
    def fetch(self, url: str) -> str:
        ...


class StaticPageFetcher:
    def __init__(self, client: Optional[HttpClient] = None, timeout: int = 20):
        self.client = client or HttpClient(timeout=timeout)

    def fetch(self, url: str) -> str:
        return self.client.get(url).text


class RenderedPageFetcher:
    def __init__(self, timeout_ms: int = 20000, wait_selector: Optional[str] = None,
                 render: Callable[..., str] = render_html):
        self.timeout_ms = timeout_ms
        self.wait_selector = wait_selector
        self.render = render

    def fetch(self, url: str) -> str:
        return self.render(url, wait_selector=self.wait_selector, timeout_ms=self.timeout_ms)


class HybridPageFetcher:
    def __init__(self, static: PageFetcher, rendered: PageFetcher):
        self.static = static
        self.rendered = rendered

    def fetch(self, url: str) -> str:
        html = self.static.fetch(url)
        if has_event_json_ld(html):
            return html
        logger.debug("no event markup in static page, rendering %s", url)
        return self.rendered.fetch(url)


def build_fetcher(settings: Settings) -> PageFetcher:
    static = StaticPageFetcher(timeout=settings.http_timeout)
    rendered = RenderedPageFetcher(timeout_ms=settings.http_timeout * 1000)
    if settings.page_fetcher == "static":
        return static
    if settings.page_fetcher == "rendered":
        return rendered
    return HybridPageFetcher(static, rendered)
