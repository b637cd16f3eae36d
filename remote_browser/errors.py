"""
Error taxonomy for the WebDriver core.

Provides:
- WebDriverError: structured base error (action, reason, details)
- One subclass per failure stage (session, transport, protocol, decode,
  lookup, interaction, argument, timeout, image)
- best_effort(): the explicit non-propagating category used for teardown and
  helper re-injection
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

_LOGGER = logging.getLogger("remote_browser.errors")


@dataclass
class WebDriverError(Exception):
    """Structured error naming the failed stage and why."""

    action: str
    reason: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.action} failed: {self.reason}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "kind": type(self).__name__,
            "action": self.action,
            "reason": self.reason,
            "details": self.details,
        }


class NoActiveSession(WebDriverError):
    """A command was issued before create_session (no network call was made)."""


@dataclass
class SessionCreationError(WebDriverError):
    status: int | None = None


class TransportError(WebDriverError):
    """The HTTP exchange itself failed (connection refused, timeout, ...)."""


@dataclass
class ProtocolError(WebDriverError):
    status: int = 0
    message: str | None = None

    def __str__(self) -> str:
        if self.message:
            return f"{self.action} failed with status {self.status}: {self.message}"
        return f"{self.action} failed with status: {self.status}"


class DecodeError(WebDriverError):
    """Response body was not JSON or lacked the expected shape."""


@dataclass
class ElementNotFound(WebDriverError):
    selector: str = ""
    strategy: str = ""


class ElementInteractionError(WebDriverError):
    """The element was found but the action on it failed in the page."""


class InvalidArgument(WebDriverError):
    pass


@dataclass
class WaitTimeout(WebDriverError):
    timeout: float = 0.0


class ImageDecodeError(WebDriverError):
    pass


class DriverStartError(WebDriverError):
    """The automation daemon could not be started or never opened its port."""


@dataclass
class BestEffortOutcome:
    action: str
    error: WebDriverError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@contextmanager
def best_effort(action: str, logger: logging.Logger | None = None) -> Generator[BestEffortOutcome, None, None]:
    """Run a secondary step whose WebDriverError is logged, recorded, and not raised.

    Usage:
        with best_effort("inject_helpers") as outcome:
            client.execute_script(HELPERS)
        if not outcome.ok:
            ...
    """
    outcome = BestEffortOutcome(action=action)
    try:
        yield outcome
    except WebDriverError as exc:
        outcome.error = exc
        (logger or _LOGGER).warning("best_effort_failed action=%s reason=%s", action, exc)
