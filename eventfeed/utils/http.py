from __future__ import annotations
from typing import Optional, Dict
import logging
import time
import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-CA,en;q=0.9",
}

# statuses worth a short pause before tenacity tries again
THROTTLED = (429, 503)


class HttpClient:
    def __init__(self, headers: Optional[Dict[str, str]] = None, timeout: int = 20, backoff: float = 1.5):
        self.session = requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)
        if headers:
            self.session.headers.update(headers)
        self.timeout = timeout
        self.backoff = backoff

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((requests.RequestException,)),
    )
    def get(self, url: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        resp = self.session.get(url, params=params, timeout=self.timeout)
        if resp.status_code in THROTTLED:
            logger.debug("throttled by %s (%s)", url, resp.status_code)
            time.sleep(self.backoff)
        resp.raise_for_status()
        return resp

    def is_alive(self, url: str) -> bool:
        """HEAD the page; only a 404 means it is gone. Timeouts and other errors count as alive."""
        try:
            resp = self.session.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as exc:
            logger.debug("link check for %s failed, assuming alive: %s", url, exc)
            return True
        return resp.status_code != 404

    def close(self) -> None:
        self.session.close()
