"""
Condition polling on top of execute/sync.

Provides the poller used for navigation readiness and element-state waits,
plus the condition scripts themselves.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .config import DEFAULT_POLL_INTERVAL, DEFAULT_WAIT_TIMEOUT
from .errors import NoActiveSession, WaitTimeout, WebDriverError
from .selector import element_lookup_expression, parse_selector
from .values import ScriptValue, is_true

_LOGGER = logging.getLogger("remote_browser.wait")

DOM_CONTENT_LOADED_SCRIPT = "return document.readyState === 'interactive' || document.readyState === 'complete';"
LOAD_COMPLETE_SCRIPT = "return document.readyState === 'complete';"

ELEMENT_STATES = ("attached", "detached", "visible", "hidden")

_VISIBLE_CHECK = """
var element = %s;
if (!element) return false;
if (element.offsetWidth === 0 || element.offsetHeight === 0) return false;
var style = window.getComputedStyle(element);
return style.display !== 'none' && style.visibility !== 'hidden' && style.opacity !== '0';
"""

_HIDDEN_CHECK = """
var element = %s;
if (!element) return true;
if (element.offsetWidth === 0 || element.offsetHeight === 0) return true;
var style = window.getComputedStyle(element);
return style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0';
"""

_ATTACHED_CHECK = """
var element = %s;
return element !== null && element !== undefined;
"""

_DETACHED_CHECK = """
var element = %s;
return element === null || element === undefined;
"""

_STATE_TEMPLATES = {
    "attached": _ATTACHED_CHECK,
    "detached": _DETACHED_CHECK,
    "visible": _VISIBLE_CHECK,
    "hidden": _HIDDEN_CHECK,
}


def normalize_state(state: str | None) -> str:
    """Unknown states wait for visibility instead of failing."""
    s = (state or "").strip().lower()
    return s if s in _STATE_TEMPLATES else "visible"


def element_state_script(selector: str, state: str) -> str:
    lookup = element_lookup_expression(parse_selector(selector))
    return _STATE_TEMPLATES[normalize_state(state)] % lookup


@dataclass
class ConditionPoller:
    """Runs a boolean condition every `interval` seconds until true or `timeout` elapses.

    Errors raised by the condition are treated as transient (the page may be
    mid-navigation), except NoActiveSession, which can never recover.
    """

    interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_WAIT_TIMEOUT
    clock: Callable[[], float] = field(default=time.monotonic)
    sleep: Callable[[float], None] = field(default=time.sleep)

    def wait_until(self, condition: Callable[[], ScriptValue], description: str) -> float:
        """Block until `condition()` returns True; return elapsed seconds.

        Raises WaitTimeout at the deadline, never later than one interval past it.
        """
        start = self.clock()
        deadline = start + self.timeout
        ticks = 0
        while True:
            ticks += 1
            try:
                value = condition()
            except NoActiveSession:
                raise
            except WebDriverError as exc:
                _LOGGER.debug("poll_error condition=%s tick=%d reason=%s", description, ticks, exc)
                value = None
            if is_true(value):
                elapsed = self.clock() - start
                _LOGGER.debug("poll_satisfied condition=%s ticks=%d elapsed=%.2f", description, ticks, elapsed)
                return elapsed

            now = self.clock()
            if now >= deadline:
                raise WaitTimeout(
                    action="wait",
                    reason=f"timeout waiting for {description} after {self.timeout:g}s",
                    details={"condition": description, "ticks": ticks},
                    timeout=self.timeout,
                )
            self.sleep(min(self.interval, deadline - now))
