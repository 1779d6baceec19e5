"""Document retrieval for monitored career pages."""

from __future__ import annotations

import time
from typing import Protocol
from urllib.parse import quote

import httpx
import structlog

from ..config import FetchConfig
from ..errors import FetchError

_RETRYABLE_STATUS = {401, 403, 429}


class Fetcher(Protocol):
    """Anything able to turn an endpoint into raw document text."""

    def fetch(self, endpoint: str) -> str: ...

    def close(self) -> None: ...


class HttpFetcher:
    """Fetch pages with httpx, optionally through a CORS-style relay."""

    def __init__(
        self,
        config: FetchConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
        retry_pause: float = 1.0,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("job_sentinel.fetcher")
        self.retry_pause = retry_pause
        headers = {"User-Agent": config.user_agent} if config.user_agent else None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=config.timeout_seconds,
            headers=headers,
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, endpoint: str) -> str:
        target = self._target_url(endpoint)
        attempts = self.config.retry_on_fail + 1
        last_error: FetchError | None = None
        for attempt in range(1, attempts + 1):
            if attempt > 1 and self.retry_pause:
                time.sleep(self.retry_pause)
            try:
                response = self._client.get(target, timeout=self.config.timeout_seconds)
            except httpx.HTTPError as exc:
                self.logger.warning(
                    "fetch_error", url=endpoint, attempt=attempt, error=str(exc) or type(exc).__name__
                )
                last_error = FetchError(f"Request to {endpoint} failed: {exc or type(exc).__name__}")
                continue
            if response.is_error:
                last_error = FetchError(
                    f"Network response was not ok: {response.status_code} {response.reason_phrase}".strip()
                )
                self.logger.warning(
                    "fetch_bad_status", url=endpoint, attempt=attempt, status=response.status_code
                )
                if not self._is_retryable(response.status_code):
                    break
                continue
            return self._unwrap(response, endpoint)
        raise last_error or FetchError(f"Fetch failed after {attempts} attempts: {endpoint}")

    def _target_url(self, endpoint: str) -> str:
        if self.config.relay_url:
            return self.config.relay_url.replace("{url}", quote(endpoint, safe=""))
        return endpoint

    def _unwrap(self, response: httpx.Response, endpoint: str) -> str:
        if self.config.relay_url:
            try:
                payload = response.json()
            except ValueError as exc:
                raise FetchError(f"Relay returned invalid JSON for {endpoint}") from exc
            contents = payload.get("contents") if isinstance(payload, dict) else None
            if not contents:
                raise FetchError("No content received from relay")
            return str(contents)
        if not response.text.strip():
            raise FetchError(f"Empty document received from {endpoint}")
        return response.text

    @staticmethod
    def _is_retryable(status_code: int) -> bool:
        return status_code >= 500 or status_code in _RETRYABLE_STATUS


class BrowserFetcher:
    """Render pages in headless Chromium for script-driven career sites."""

    def __init__(self, config: FetchConfig, logger: structlog.BoundLogger | None = None) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("job_sentinel.fetcher")

    def close(self) -> None:
        return None

    def fetch(self, endpoint: str) -> str:
        try:
            from playwright.sync_api import Error as PlaywrightError
            from playwright.sync_api import sync_playwright
        except ImportError as exc:
            raise FetchError(
                "Browser fetching requires installing the 'playwright' package."
            ) from exc

        timeout_ms = self.config.timeout_seconds * 1000
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=self.config.headless)
                try:
                    context = browser.new_context(user_agent=self.config.user_agent)
                    page = context.new_page()
                    response = page.goto(endpoint, timeout=timeout_ms, wait_until="networkidle")
                    if response is not None and not response.ok:
                        raise FetchError(
                            f"Network response was not ok: {response.status} {response.status_text}".strip()
                        )
                    html = page.content()
                finally:
                    browser.close()
        except PlaywrightError as exc:
            self.logger.warning("browser_fetch_error", url=endpoint, error=str(exc))
            raise FetchError(f"Browser fetch of {endpoint} failed: {exc}") from exc
        if not html.strip():
            raise FetchError(f"Empty document received from {endpoint}")
        return html


def build_fetcher(config: FetchConfig, logger: structlog.BoundLogger | None = None) -> Fetcher:
    if config.use_browser:
        return BrowserFetcher(config, logger=logger)
    return HttpFetcher(config, logger=logger)


__all__ = ["BrowserFetcher", "Fetcher", "HttpFetcher", "build_fetcher"]
