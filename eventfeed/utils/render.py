from __future__ import annotations
from typing import Iterator, Optional
from contextlib import contextmanager
import logging

from playwright.sync_api import BrowserContext, Error as PlaywrightError, sync_playwright

logger = logging.getLogger(__name__)


@contextmanager
def browser_context() -> Iterator[BrowserContext]:
    pw = sync_playwright().start()
    browser = None
    context = None
    try:
        browser = pw.chromium.launch(headless=True)
        context = browser.new_context(locale="en-CA", timezone_id="America/Toronto")
        yield context
    finally:
        if context is not None:
            context.close()
        if browser is not None:
            browser.close()
        pw.stop()


def render_html(url: str, wait_selector: Optional[str] = None, timeout_ms: int = 10000) -> str:
    with browser_context() as ctx:
        page = ctx.new_page()
        page.goto(url, timeout=timeout_ms)
        if wait_selector:
            try:
                page.wait_for_selector(wait_selector, timeout=timeout_ms)
            except PlaywrightError as exc:
                # the page may still carry enough markup to extract from
                logger.debug("selector %r never appeared on %s: %s", wait_selector, url, exc)
        return page.content()
