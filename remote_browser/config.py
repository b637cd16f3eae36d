from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

DEFAULT_BASE_URL = "http://localhost:4444"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_WAIT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_NETWORK_IDLE_SETTLE = 0.5
DEFAULT_VIEWPORT = (1280, 720)
# Safari's address bar/tab strip eats this much of the outer window height.
DEFAULT_WINDOW_CHROME_HEIGHT = 52


@dataclass
class DriverConfig:
    base_url: str = DEFAULT_BASE_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    network_idle_settle: float = DEFAULT_NETWORK_IDLE_SETTLE
    browser_name: str = "Safari"
    viewport_width: int = DEFAULT_VIEWPORT[0]
    viewport_height: int = DEFAULT_VIEWPORT[1]
    window_chrome_height: int = DEFAULT_WINDOW_CHROME_HEIGHT
    driver_binary: str = "safaridriver"
    driver_port: int = 4444
    driver_ready_timeout: float = 10.0
    extra_capabilities: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def normalize_base_url(raw: str | None) -> str:
        url = (raw or "").strip().rstrip("/")
        return url or DEFAULT_BASE_URL

    @classmethod
    def from_env(cls) -> DriverConfig:
        port = int(os.environ.get("WEBDRIVER_PORT", "4444"))
        base_url = os.environ.get("WEBDRIVER_URL") or f"http://localhost:{port}"
        return cls(
            base_url=cls.normalize_base_url(base_url),
            http_timeout=float(os.environ.get("WEBDRIVER_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT))),
            wait_timeout=float(os.environ.get("WEBDRIVER_WAIT_TIMEOUT", str(DEFAULT_WAIT_TIMEOUT))),
            poll_interval=float(os.environ.get("WEBDRIVER_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))),
            network_idle_settle=float(
                os.environ.get("WEBDRIVER_NETWORK_IDLE_SETTLE", str(DEFAULT_NETWORK_IDLE_SETTLE))
            ),
            browser_name=os.environ.get("WEBDRIVER_BROWSER_NAME", "Safari"),
            driver_binary=os.environ.get("WEBDRIVER_BINARY", "safaridriver"),
            driver_port=port,
        )

    def capabilities(self) -> dict[str, Any]:
        """Capabilities sent in the alwaysMatch block of a new session."""
        caps: dict[str, Any] = {"browserName": self.browser_name}
        if self.browser_name.lower() == "safari":
            # Pin DPR so captures line up with CSS pixels.
            caps["safari:devicePixelRatio"] = 1.0
        caps.update(self.extra_capabilities)
        return caps
