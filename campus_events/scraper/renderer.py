"""Page renderer capability set and its Playwright implementation.

The pagination loop and the extractor only talk to :class:`PageRenderer`, so
they run unchanged against an in-memory fake in tests. Every blocking call
takes a timeout in seconds; a timeout surfaces as :class:`RenderTimeout` and
any other renderer failure as :class:`RenderError`.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol

from playwright.sync_api import (
    Browser,
    Error as PWError,
    Page,
    Playwright,
    TimeoutError as PWTimeout,
    sync_playwright,
)

from .error_codes import RenderError, RenderTimeout
from .logging_utils import _scraper_event
from .utils import log_line


class PageRenderer(Protocol):
    def navigate(self, url: str, *, wait_until: str, timeout: float) -> None: ...

    def wait_for_selector(self, selector: str, *, timeout: float) -> None: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def query_selector(self, selector: str) -> Optional[Any]: ...

    def click(self, handle: Any) -> None: ...

    def wait_for_url_change(self, previous_url: str, *, wait_until: str, timeout: float) -> None: ...

    def current_url(self) -> str: ...

    def close(self) -> None: ...


def _ms(seconds: float) -> float:
    return max(0.0, float(seconds)) * 1000


def _is_target_closed_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return "target closed" in message or "has been closed" in message


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map Playwright exceptions onto the renderer error types."""

    try:
        yield
    except PWTimeout as exc:
        raise RenderTimeout(f"{action} timed out: {exc}") from exc
    except PWError as exc:
        if _is_target_closed_error(exc):
            raise RenderError(f"{action} failed, target closed: {exc}") from exc
        raise RenderError(f"{action} failed: {exc}") from exc


class PlaywrightRenderer:
    """Headless Chromium page driven through the Playwright sync API."""

    def __init__(
        self,
        *,
        user_agent: str,
        default_timeout: float,
        headless: bool = True,
        executable_path: Optional[str] = None,
    ) -> None:
        self.user_agent = user_agent
        self.default_timeout = default_timeout
        self.headless = headless
        self.executable_path = executable_path
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    def open(self) -> "PlaywrightRenderer":
        """Launch the browser and open a single page.

        Raises :class:`RenderError` when the browser cannot be started; any
        partially started resources are released first.
        """

        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                executable_path=self.executable_path,
                args=["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"],
            )
            context = self._browser.new_context(
                user_agent=self.user_agent,
                locale="en-US",
                viewport={"width": 1368, "height": 900},
            )
            self._page = context.new_page()
            self._page.set_default_timeout(_ms(self.default_timeout))
        except PWError as exc:
            self.close()
            raise RenderError(f"browser launch failed: {exc}") from exc
        _scraper_event("nav", step="browser_open", headless=self.headless)
        return self

    def __enter__(self) -> "PlaywrightRenderer":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RenderError("renderer is not open")
        return self._page

    def navigate(self, url: str, *, wait_until: str, timeout: float) -> None:
        with _translate_errors(f"goto({url!r})"):
            self.page.goto(url, wait_until=wait_until, timeout=_ms(timeout))

    def wait_for_selector(self, selector: str, *, timeout: float) -> None:
        with _translate_errors(f"wait_for_selector({selector!r})"):
            self.page.wait_for_selector(selector, timeout=_ms(timeout))

    def evaluate(self, script: str, arg: Any = None) -> Any:
        with _translate_errors("evaluate"):
            return self.page.evaluate(script, arg)

    def query_selector(self, selector: str) -> Optional[Any]:
        with _translate_errors(f"query_selector({selector!r})"):
            return self.page.query_selector(selector)

    def click(self, handle: Any) -> None:
        with _translate_errors("click"):
            handle.click()

    def wait_for_url_change(self, previous_url: str, *, wait_until: str, timeout: float) -> None:
        """Block until the page leaves ``previous_url`` and reaches ``wait_until``."""

        with _translate_errors("wait_for_url"):
            self.page.wait_for_url(
                lambda url: url != previous_url,
                wait_until=wait_until,
                timeout=_ms(timeout),
            )

    def current_url(self) -> str:
        return self._page.url if self._page is not None else ""

    def close(self) -> None:
        """Close the browser and stop Playwright; safe to call repeatedly."""

        browser, playwright = self._browser, self._playwright
        self._page = None
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                browser.close()
            except Exception as exc:  # noqa: BLE001
                log_line(f"[RENDER] Browser close failed: {exc}")
        if playwright is not None:
            try:
                playwright.stop()
            except Exception as exc:  # noqa: BLE001
                log_line(f"[RENDER] Playwright stop failed: {exc}")


__all__ = ["PageRenderer", "PlaywrightRenderer"]
