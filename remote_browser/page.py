"""
Thin Browser / BrowserContext / Page facade over one WebDriverClient.

Not a page-object model: it bootstraps a session with a viewport, keeps the
helper bundle injected across navigations, and forwards everything else to
the client.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from .client import SessionInfo, WebDriverClient
from .config import DriverConfig
from .errors import BestEffortOutcome, best_effort
from .imaging import compare_images, pixel_difference_count
from .launcher import DriverProcess
from .locator import Locator
from .values import ScriptValue

_LOGGER = logging.getLogger("remote_browser.page")


@lru_cache(maxsize=1)
def helpers_script() -> str:
    """Source of the helper bundle injected into every page."""
    return resources.files("remote_browser").joinpath("assets/helpers.js").read_text(encoding="utf-8")


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int

    @classmethod
    def from_options(cls, options: dict[str, Any] | None, default: Viewport) -> Viewport:
        raw = (options or {}).get("viewport")
        if not isinstance(raw, dict):
            return default
        width = raw.get("width")
        height = raw.get("height")
        return cls(
            width=int(width) if isinstance(width, (int, float)) and not isinstance(width, bool) else default.width,
            height=int(height) if isinstance(height, (int, float)) and not isinstance(height, bool) else default.height,
        )


class Page:
    def __init__(
        self,
        client: WebDriverClient,
        session: SessionInfo,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.session = session
        self._sleep = sleep

    def inject_helpers(self) -> BestEffortOutcome:
        with best_effort("inject_helpers", _LOGGER) as outcome:
            self.client.execute_script(helpers_script())
        return outcome

    def goto(self, url: str, wait_until: str | None = "load") -> None:
        self.client.navigate(url, wait_until)
        # Navigation wipes page globals; helpers are a convenience, never a reason to fail.
        self.inject_helpers()

    def url(self) -> str:
        return self.client.get_current_url()

    def title(self) -> str:
        return self.client.get_title()

    def evaluate(self, script: str, *args: Any) -> ScriptValue:
        return self.client.execute_script(script, list(args))

    def locator(self, selector: str) -> Locator:
        return Locator(self.client, selector)

    def click(self, selector: str) -> None:
        self.client.click_element(self.client.find_element(selector))

    def fill(self, selector: str, text: str) -> None:
        self.client.send_keys(self.client.find_element(selector), text)

    def wait_for_selector(self, selector: str, state: str = "visible") -> None:
        self.client.wait_for_selector(selector, state)

    def screenshot(self, path: str | Path | None = None) -> bytes:
        """Viewport PNG; also written to `path` when given. Always returns the bytes."""
        data = self.client.take_screenshot()
        if path:
            Path(path).write_bytes(data)
        return data

    def compare_screenshots(self, img1: bytes, img2: bytes) -> float:
        """Similarity in [0, 1]; 1.0 means identical after size normalization."""
        return compare_images(img1, img2)

    def count_pixel_difference(self, img1: bytes, img2: bytes, threshold: int = 0) -> int:
        return pixel_difference_count(img1, img2, threshold)

    def wait_for_timeout(self, milliseconds: int) -> None:
        self._sleep(milliseconds / 1000.0)

    def close(self) -> BestEffortOutcome:
        return self.client.delete_session()


class BrowserContext:
    def __init__(self, browser: Browser, options: dict[str, Any] | None = None) -> None:
        self.browser = browser
        self.options = options
        self.pages: list[Page] = []

    def new_page(self) -> Page:
        page = self.browser.new_page(self.options)
        self.pages.append(page)
        return page

    def cookies(self) -> list[dict[str, Any]]:
        return self.browser.client.get_all_cookies()


class Browser:
    """Entry point: owns the client and, when launched, a reference on the driver process."""

    def __init__(
        self,
        client: WebDriverClient | None = None,
        *,
        config: DriverConfig | None = None,
        driver: DriverProcess | None = None,
    ) -> None:
        self.config = config or (client.config if client is not None else DriverConfig.from_env())
        self.client = client or WebDriverClient(config=self.config)
        self.driver = driver
        self._closed = False

    @classmethod
    def launch(cls, config: DriverConfig | None = None) -> Browser:
        cfg = config or DriverConfig.from_env()
        driver = DriverProcess.shared(cfg)
        driver.acquire()
        return cls(WebDriverClient(config=cfg), config=cfg, driver=driver)

    def new_context(self, options: dict[str, Any] | None = None) -> BrowserContext:
        return BrowserContext(self, options)

    def new_page(self, options: dict[str, Any] | None = None) -> Page:
        default = Viewport(self.config.viewport_width, self.config.viewport_height)
        viewport = Viewport.from_options(options, default)
        session = self.client.create_session(self.config.capabilities())

        with best_effort("set_window_size", _LOGGER):
            self.client.set_window_size(viewport.width, viewport.height + self.config.window_chrome_height)

        page = Page(self.client, session)
        page.inject_helpers()
        return page

    def close(self) -> BestEffortOutcome:
        outcome = self.client.delete_session()
        if self.driver is not None and not self._closed:
            self.driver.release()
        self._closed = True
        return outcome

    def __enter__(self) -> Browser:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
