"""
Headless Chromium session (Playwright) shared by all HTML sources in one run.
Only the orchestrator holds a session; pages are opened and closed per source.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

try:
    from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeout
    HAS_PLAYWRIGHT = True
except ImportError:
    HAS_PLAYWRIGHT = False

from .errors import RenderSessionError, SourceFetchError

DEFAULT_NAVIGATION_TIMEOUT_MS = 25000
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; KentJamahBot/1.0)"


@dataclass(frozen=True)
class RenderedPage:
    url: str
    html: str
    text: Optional[str] = None  # document.body.innerText when rendered by a browser


class BrowserSession:
    """Context manager: launch Chromium on enter, close it on exit."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None, logger: Optional[logging.Logger] = None):
        settings = settings or {}
        self.headless = settings.get("headless", True)
        self.executable_path = settings.get("executable_path") or None
        self.navigation_timeout_ms = int(settings.get("navigation_timeout_ms") or DEFAULT_NAVIGATION_TIMEOUT_MS)
        self.user_agent = settings.get("user_agent") or DEFAULT_USER_AGENT
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._playwright = None
        self._browser = None
        self._context = None

    def __enter__(self) -> "BrowserSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self) -> None:
        if not HAS_PLAYWRIGHT:
            raise RenderSessionError(
                "Playwright not installed; run: pip install playwright && playwright install chromium"
            )
        self.logger.info(f"Launching headless browser (headless={self.headless})")
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                executable_path=self.executable_path,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            self._context = self._browser.new_context(user_agent=self.user_agent)
        except Exception as e:
            self.close()
            raise RenderSessionError(f"Failed to launch browser: {e}") from e

    def render(self, url: str) -> RenderedPage:
        """Open url in a fresh page and return its DOM and visible text.

        A navigation timeout is not fatal: whatever loaded so far is returned.
        """
        if self._context is None:
            raise RenderSessionError("Browser session is not started")
        try:
            page = self._context.new_page()
        except Exception as e:
            raise SourceFetchError(f"Could not open page for {url}: {e}") from e
        try:
            try:
                page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            except PlaywrightTimeout as e:
                self.logger.warning(f"Navigation timeout for {url}, using partial content: {e}")
            html = page.content()
            try:
                text = page.inner_text("body", timeout=5000)
            except PlaywrightTimeout:
                text = None
            return RenderedPage(url=url, html=html, text=text)
        finally:
            try:
                page.close()
            except Exception as e:
                self.logger.debug(f"Error closing page for {url}: {e}")

    def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except Exception as e:
                self.logger.debug(f"Error closing browser: {e}")
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                self.logger.debug(f"Error stopping playwright: {e}")
        self._context = None
        self._browser = None
        self._playwright = None
