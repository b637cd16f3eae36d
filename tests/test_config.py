from __future__ import annotations

import pytest

from remote_browser.config import DEFAULT_BASE_URL, DriverConfig
from remote_browser.errors import BestEffortOutcome, ProtocolError, WebDriverError, best_effort


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "WEBDRIVER_URL",
        "WEBDRIVER_PORT",
        "WEBDRIVER_HTTP_TIMEOUT",
        "WEBDRIVER_WAIT_TIMEOUT",
        "WEBDRIVER_POLL_INTERVAL",
        "WEBDRIVER_NETWORK_IDLE_SETTLE",
        "WEBDRIVER_BROWSER_NAME",
        "WEBDRIVER_BINARY",
    ):
        monkeypatch.delenv(name, raising=False)
    cfg = DriverConfig.from_env()
    assert cfg.base_url == DEFAULT_BASE_URL
    assert cfg.wait_timeout == 30.0
    assert cfg.poll_interval == 0.1
    assert cfg.network_idle_settle == 0.5
    assert cfg.driver_binary == "safaridriver"


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBDRIVER_PORT", "5555")
    monkeypatch.delenv("WEBDRIVER_URL", raising=False)
    monkeypatch.setenv("WEBDRIVER_WAIT_TIMEOUT", "5")
    monkeypatch.setenv("WEBDRIVER_BROWSER_NAME", "chrome")
    cfg = DriverConfig.from_env()
    assert cfg.base_url == "http://localhost:5555"
    assert cfg.driver_port == 5555
    assert cfg.wait_timeout == 5.0
    assert cfg.capabilities() == {"browserName": "chrome"}

    monkeypatch.setenv("WEBDRIVER_URL", " http://grid.local:4444/wd/hub/ ")
    assert DriverConfig.from_env().base_url == "http://grid.local:4444/wd/hub"


def test_normalize_base_url() -> None:
    assert DriverConfig.normalize_base_url("http://localhost:4444/") == "http://localhost:4444"
    assert DriverConfig.normalize_base_url("") == DEFAULT_BASE_URL
    assert DriverConfig.normalize_base_url(None) == DEFAULT_BASE_URL


def test_safari_capabilities_pin_pixel_ratio() -> None:
    cfg = DriverConfig(extra_capabilities={"acceptInsecureCerts": True})
    assert cfg.capabilities() == {
        "browserName": "Safari",
        "safari:devicePixelRatio": 1.0,
        "acceptInsecureCerts": True,
    }


def test_error_rendering() -> None:
    err = ProtocolError(action="get_title", reason="boom", status=500, message="boom")
    assert str(err) == "get_title failed with status 500: boom"
    assert err.to_dict()["kind"] == "ProtocolError"
    assert isinstance(err, WebDriverError)


def test_best_effort_records_and_swallows_driver_errors() -> None:
    with best_effort("cleanup") as outcome:
        raise ProtocolError(action="cleanup", reason="gone", status=404)
    assert isinstance(outcome, BestEffortOutcome)
    assert not outcome.ok
    assert outcome.error is not None and outcome.error.action == "cleanup"


def test_best_effort_lets_other_errors_through() -> None:
    with pytest.raises(KeyError):
        with best_effort("cleanup"):
            raise KeyError("not a driver error")
