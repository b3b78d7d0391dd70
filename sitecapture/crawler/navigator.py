"""Browser navigation collaborator backed by Selenium."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Protocol

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.firefox.options import Options as FirefoxOptions

from .config import CrawlerSettings
from .errors import NavigationError, SetupError
from .types import Viewport
from .url import extract_links_from_html

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PageHandle:
    """The single browser surface a session navigates and captures from."""

    driver: Any
    browser: str
    viewport: Viewport


class Navigator(Protocol):
    """What the crawl loop needs from a browser."""

    def open_page(self, viewport: Viewport) -> Any:
        ...

    def navigate(self, page: Any, url: str, timeout_ms: int) -> None:
        ...

    def extract_links(self, page: Any, base_origin: str) -> list[str]:
        ...

    def get_title(self, page: Any) -> str:
        ...

    def close_page(self, page: Any) -> None:
        ...


class SeleniumNavigator:
    """Drive one headless browser per opened page.

    Chrome is tried first and Firefox second unless settings pin a browser. A
    driver is never shared between sessions.
    """

    def __init__(self, settings: CrawlerSettings | None = None) -> None:
        self.settings = settings or CrawlerSettings()

    def open_page(self, viewport: Viewport) -> PageHandle:
        try:
            driver, browser = self._create_driver(viewport)
        except RuntimeError as exc:
            raise SetupError(f"Failed to launch browser: {exc}") from exc

        try:
            driver.set_window_size(viewport.width, viewport.height)
        except WebDriverException as exc:
            driver.quit()
            raise SetupError(f"Failed to size browser window: {exc}") from exc

        LOGGER.info("Launched %s browser (%dx%d)", browser, viewport.width, viewport.height)
        return PageHandle(driver=driver, browser=browser, viewport=viewport)

    def navigate(self, page: PageHandle, url: str, timeout_ms: int) -> None:
        driver = page.driver
        try:
            driver.set_page_load_timeout(max(1, math.ceil(timeout_ms / 1000)))
            driver.get(url)
        except TimeoutException as exc:
            raise NavigationError(f"Navigation timeout of {timeout_ms} ms exceeded: {url}") from exc
        except WebDriverException as exc:
            message = getattr(exc, "msg", None) or str(exc)
            raise NavigationError(f"{exc.__class__.__name__}: {message}") from exc

    def extract_links(self, page: PageHandle, base_origin: str) -> list[str]:
        driver = page.driver
        try:
            html = driver.page_source or ""
            current_url = driver.current_url or base_origin
        except WebDriverException as exc:
            raise NavigationError(f"Failed to read page source: {exc}") from exc
        return extract_links_from_html(html, base_url=current_url, origin_url=base_origin)

    def get_title(self, page: PageHandle) -> str:
        try:
            return (page.driver.title or "").strip()
        except WebDriverException as exc:
            raise NavigationError(f"Failed to read page title: {exc}") from exc

    def close_page(self, page: PageHandle) -> None:
        try:
            page.driver.quit()
        except WebDriverException as exc:
            LOGGER.debug("Ignoring browser shutdown error: %s", exc)

    def _create_driver(self, viewport: Viewport) -> tuple[Any, str]:
        errors: list[str] = []
        preferred = self.settings.browser
        user_agent = self.settings.user_agent

        if preferred in {"auto", "chrome"}:
            try:
                chrome_options = ChromeOptions()
                if self.settings.headless:
                    chrome_options.add_argument("--headless=new")
                chrome_options.add_argument("--disable-gpu")
                chrome_options.add_argument("--no-sandbox")
                chrome_options.add_argument("--disable-setuid-sandbox")
                chrome_options.add_argument("--disable-dev-shm-usage")
                chrome_options.add_argument("--hide-scrollbars")
                chrome_options.add_argument(f"--window-size={viewport.width},{viewport.height}")
                if user_agent:
                    chrome_options.add_argument(f"--user-agent={user_agent}")
                return webdriver.Chrome(options=chrome_options), "chrome"
            except WebDriverException as exc:
                errors.append(f"Chrome: {exc}")

        if preferred in {"auto", "firefox"}:
            try:
                firefox_options = FirefoxOptions()
                if self.settings.headless:
                    firefox_options.add_argument("-headless")
                firefox_options.add_argument(f"--width={viewport.width}")
                firefox_options.add_argument(f"--height={viewport.height}")
                if user_agent:
                    firefox_options.set_preference("general.useragent.override", user_agent)
                return webdriver.Firefox(options=firefox_options), "firefox"
            except WebDriverException as exc:
                errors.append(f"Firefox: {exc}")

        raise RuntimeError("; ".join(errors) or "No usable Selenium driver found")


__all__ = [
    "Navigator",
    "PageHandle",
    "SeleniumNavigator",
]
