"""
WebDriver protocol client.

One WebDriverClient owns one remote session. Every command except
create_session checks for a session id locally before touching the network;
transport, status and decode failures surface as distinct error types and are
never retried here.

    client = WebDriverClient("http://localhost:4444")
    client.create_session({"browserName": "Safari"})
    client.navigate("https://example.com", wait_until="domcontentloaded")
    element_id = client.find_element("role=button")
    client.click_element(element_id)
    png = client.take_screenshot()
    client.delete_session()
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
import time
import urllib.parse
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .config import DriverConfig
from .errors import (
    BestEffortOutcome,
    DecodeError,
    ElementInteractionError,
    ElementNotFound,
    ImageDecodeError,
    InvalidArgument,
    NoActiveSession,
    ProtocolError,
    SessionCreationError,
    TransportError,
    WebDriverError,
    best_effort,
)
from .http_client import HttpClientError, HttpResponse, Transport, UrllibTransport
from .imaging import crop_top_left
from .selector import ParsedSelector, all_selector_script, parse_selector, selector_script
from .values import ScriptValue, as_number, element_reference, extract_element_id, extract_element_ids
from .wait import (
    DOM_CONTENT_LOADED_SCRIPT,
    LOAD_COMPLETE_SCRIPT,
    ConditionPoller,
    element_state_script,
    normalize_state,
)

logger = logging.getLogger("remote_browser.client")

WAIT_UNTIL_OPTIONS = ("load", "domcontentloaded", "networkidle")

VIEWPORT_SCRIPT = """
return {
    width: window.innerWidth,
    height: window.innerHeight,
    devicePixelRatio: window.devicePixelRatio || 1
};
"""

CLICK_SCRIPT = """
var element = arguments[0];
if (!element) {
    return {success: false, error: "Element not found"};
}
var info = {
    tagName: element.tagName,
    id: element.id,
    className: element.className,
    text: element.textContent ? element.textContent.substring(0, 50) : "",
    visible: element.offsetWidth > 0 && element.offsetHeight > 0,
    disabled: element.disabled,
    type: element.type
};
element.scrollIntoView({behavior: 'instant', block: 'center', inline: 'center'});
try {
    element.click();
    return {success: true, info: info};
} catch (e) {
    return {success: false, error: e.toString(), info: info};
}
"""


@dataclass
class SessionInfo:
    session_id: str
    capabilities: dict[str, Any] = field(default_factory=dict)
    base_url: str = ""


def _remote_error(resp: HttpResponse) -> tuple[str | None, str | None]:
    """(message, error code) from a W3C error body, if the body has one."""
    try:
        body = resp.json()
    except (ValueError, UnicodeDecodeError):
        return None, None
    value = body.get("value") if isinstance(body, dict) else None
    if not isinstance(value, dict):
        return None, None
    message = value.get("message")
    error = value.get("error")
    return (
        message if isinstance(message, str) and message else None,
        error if isinstance(error, str) and error else None,
    )


def _parse_viewport(value: ScriptValue) -> tuple[int, int] | None:
    """Viewport size in capture pixels (CSS size times devicePixelRatio), or None when unusable."""
    if not isinstance(value, dict):
        return None
    width = as_number(value.get("width"))
    height = as_number(value.get("height"))
    if not width or not height:
        return None
    dpr = as_number(value.get("devicePixelRatio"))
    if not dpr or dpr <= 0:
        dpr = 1.0
    target_w = int(width * dpr)
    target_h = int(height * dpr)
    if target_w <= 0 or target_h <= 0:
        return None
    return target_w, target_h


class WebDriverClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        config: DriverConfig | None = None,
        transport: Transport | None = None,
        poller: ConditionPoller | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or DriverConfig()
        self.base_url = DriverConfig.normalize_base_url(base_url or self.config.base_url)
        self.transport: Transport = transport or UrllibTransport(timeout=self.config.http_timeout)
        self.poller = poller or ConditionPoller(interval=self.config.poll_interval, timeout=self.config.wait_timeout)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._session: SessionInfo | None = None

    # ── Session state ──

    @property
    def session_id(self) -> str:
        session = self._session
        return session.session_id if session is not None else ""

    @property
    def session(self) -> SessionInfo | None:
        return self._session

    @property
    def has_session(self) -> bool:
        return bool(self.session_id)

    def __enter__(self) -> WebDriverClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.has_session:
            self.delete_session()

    # ── Plumbing ──

    def _require_session(self, action: str) -> str:
        session_id = self.session_id
        if not session_id:
            raise NoActiveSession(action=action, reason="no active session")
        return session_id

    def _session_url(self, session_id: str, path: str = "") -> str:
        return f"{self.base_url}/session/{urllib.parse.quote(session_id, safe='')}{path}"

    def _exchange(self, action: str, method: str, url: str, payload: Any = None) -> HttpResponse:
        try:
            return self.transport.request(method, url, payload)
        except HttpClientError as exc:
            raise TransportError(action=action, reason=str(exc), details={"method": method, "url": url}) from exc

    @staticmethod
    def _protocol_error(action: str, resp: HttpResponse, details: dict[str, Any] | None = None) -> ProtocolError:
        message, error = _remote_error(resp)
        info = dict(details or {})
        if error:
            info["error"] = error
        return ProtocolError(
            action=action,
            reason=message or f"status {resp.status}",
            details=info,
            status=resp.status,
            message=message,
        )

    @staticmethod
    def _decode_value(action: str, resp: HttpResponse) -> ScriptValue:
        try:
            body = resp.json()
        except (ValueError, UnicodeDecodeError) as exc:
            raise DecodeError(action=action, reason=f"failed to decode response: {exc}") from exc
        if not isinstance(body, dict) or "value" not in body:
            raise DecodeError(action=action, reason="response has no 'value' field")
        return body["value"]

    def _command(
        self,
        action: str,
        method: str,
        path: str,
        payload: Any = None,
        *,
        decode: bool = True,
        details: dict[str, Any] | None = None,
    ) -> ScriptValue:
        session_id = self._require_session(action)
        resp = self._exchange(action, method, self._session_url(session_id, path), payload)
        if not resp.ok:
            raise self._protocol_error(action, resp, details)
        if not decode:
            return None
        return self._decode_value(action, resp)

    # ── Session lifecycle ──

    def create_session(self, capabilities: dict[str, Any] | None = None) -> SessionInfo:
        caps = dict(capabilities) if capabilities is not None else self.config.capabilities()
        payload = {"capabilities": {"alwaysMatch": caps}}
        resp = self._exchange("create_session", "POST", f"{self.base_url}/session", payload)
        if not resp.ok:
            message, _ = _remote_error(resp)
            reason = f"session creation failed with status: {resp.status}"
            if message:
                reason = f"{reason}: {message}"
            raise SessionCreationError(action="create_session", reason=reason, status=resp.status)

        try:
            body = resp.json()
        except (ValueError, UnicodeDecodeError) as exc:
            raise SessionCreationError(
                action="create_session", reason=f"failed to decode session response: {exc}", status=resp.status
            ) from exc
        value = body.get("value") if isinstance(body, dict) else None
        value = value if isinstance(value, dict) else {}
        session_id = value.get("sessionId")
        if not session_id and isinstance(body, dict):
            # JSON wire protocol drivers put the id next to value.
            session_id = body.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise SessionCreationError(
                action="create_session", reason="session response has no sessionId", status=resp.status
            )
        raw_caps = value.get("capabilities")
        info = SessionInfo(
            session_id=session_id,
            capabilities=raw_caps if isinstance(raw_caps, dict) else {},
            base_url=self.base_url,
        )
        with self._lock:
            previous = self._session
            self._session = info
        logger.info("session_created id=%s", session_id)
        if previous is not None and previous.session_id != session_id:
            logger.warning("create_session replaced active session old=%s new=%s", previous.session_id, session_id)
            self._end_remote_session(previous)
        return info

    def delete_session(self) -> BestEffortOutcome:
        """End the session. Never raises; failures are logged and the id is cleared anyway."""
        with self._lock:
            session = self._session
            self._session = None
        if session is None:
            logger.warning("delete_session called without an active session")
            return BestEffortOutcome(action="delete_session")
        return self._end_remote_session(session)

    def _end_remote_session(self, session: SessionInfo) -> BestEffortOutcome:
        with best_effort("delete_session", logger) as outcome:
            resp = self._exchange("delete_session", "DELETE", self._session_url(session.session_id))
            if not resp.ok:
                raise self._protocol_error("delete_session", resp)
        if outcome.ok:
            logger.info("session_deleted id=%s", session.session_id)
        return outcome

    # ── Navigation ──

    def navigate(self, url: str, wait_until: str | None = "load") -> None:
        """Load `url`. The protocol already blocks for "load"; the other modes poll afterwards."""
        self._require_session("navigate")
        mode = wait_until or "load"
        if mode not in WAIT_UNTIL_OPTIONS:
            raise InvalidArgument(
                action="navigate",
                reason=f"invalid waitUntil option: {mode}",
                details={"allowed": list(WAIT_UNTIL_OPTIONS)},
            )

        self._command("navigate", "POST", "/url", {"url": url}, decode=False)

        if mode == "domcontentloaded":
            self.wait_for_script(DOM_CONTENT_LOADED_SCRIPT, "domcontentloaded")
        elif mode == "networkidle":
            self.wait_for_script(LOAD_COMPLETE_SCRIPT, "networkidle")
            # No real network tracking over WebDriver: settle on a fixed delay.
            self._sleep(self.config.network_idle_settle)

    def get_current_url(self) -> str:
        value = self._command("get_current_url", "GET", "/url")
        if not isinstance(value, str):
            raise DecodeError(action="get_current_url", reason="url value is not a string")
        return value

    def get_title(self) -> str:
        value = self._command("get_title", "GET", "/title")
        if not isinstance(value, str):
            raise DecodeError(action="get_title", reason="title value is not a string")
        return value

    # ── Script ──

    def execute_script(self, script: str, args: Sequence[Any] | None = None) -> ScriptValue:
        payload = {"script": script, "args": list(args) if args is not None else []}
        return self._command("execute_script", "POST", "/execute/sync", payload)

    def wait_for_script(self, script: str, description: str) -> float:
        """Poll a boolean script until it returns true; WaitTimeout at the poller deadline."""
        self._require_session("wait")
        return self.poller.wait_until(lambda: self.execute_script(script), description)

    def wait_for_selector(self, selector: str, state: str | None = "visible") -> float:
        """Wait for attached/detached/visible/hidden; unknown states mean visible."""
        self._require_session("wait_for_selector")
        state_name = normalize_state(state)
        script = element_state_script(selector, state_name)
        return self.wait_for_script(script, f"selector '{selector}' to be {state_name}")

    # ── Elements ──

    def find_element(self, selector: str) -> str:
        parsed = parse_selector(selector)
        if parsed.is_native:
            return self._find_element_native(selector, parsed)
        return self._find_element_custom(selector, parsed)

    def find_all_elements(self, selector: str) -> list[str]:
        parsed = parse_selector(selector)
        if parsed.is_native:
            return self._find_all_native(selector, parsed)
        return self._find_all_custom(parsed)

    def count_elements(self, selector: str) -> int:
        return len(self.find_all_elements(selector))

    def _find_element_native(self, selector: str, parsed: ParsedSelector) -> str:
        action = "find_element"
        session_id = self._require_session(action)
        payload = {"using": parsed.strategy.value, "value": parsed.value}
        resp = self._exchange(action, "POST", self._session_url(session_id, "/element"), payload)
        details = {"strategy": parsed.strategy.value, "selector": selector}
        if not resp.ok:
            message, error = _remote_error(resp)
            if error == "no such element" or (error is None and resp.status == 404):
                raise ElementNotFound(
                    action=action,
                    reason=message or "element not found",
                    details=details,
                    selector=selector,
                    strategy=parsed.strategy.value,
                )
            raise self._protocol_error(action, resp, details)

        element_id = extract_element_id(self._decode_value(action, resp))
        if element_id is None:
            raise ElementNotFound(
                action=action,
                reason="element not found",
                details=details,
                selector=selector,
                strategy=parsed.strategy.value,
            )
        return element_id

    def _find_element_custom(self, selector: str, parsed: ParsedSelector) -> str:
        result = self.execute_script(selector_script(parsed.strategy, parsed.value))
        if result is None:
            raise ElementNotFound(
                action="find_element",
                reason="element not found",
                details={"strategy": parsed.strategy.value, "selector": selector},
                selector=selector,
                strategy=parsed.strategy.value,
            )
        element_id = extract_element_id(result)
        if element_id is None:
            raise DecodeError(
                action="find_element",
                reason="invalid element reference returned",
                details={"strategy": parsed.strategy.value, "selector": selector},
            )
        logger.debug("custom_lookup strategy=%s element=%s", parsed.strategy.value, element_id)
        return element_id

    def _find_all_native(self, selector: str, parsed: ParsedSelector) -> list[str]:
        payload = {"using": parsed.strategy.value, "value": parsed.value}
        value = self._command(
            "find_all_elements",
            "POST",
            "/elements",
            payload,
            details={"strategy": parsed.strategy.value, "selector": selector},
        )
        if not isinstance(value, list):
            raise DecodeError(action="find_all_elements", reason="elements value is not a list")
        return extract_element_ids(value)

    def _find_all_custom(self, parsed: ParsedSelector) -> list[str]:
        result = self.execute_script(all_selector_script(parsed.strategy, parsed.value))
        return extract_element_ids(result)

    def click_element(self, element_id: str) -> None:
        """Click through a page script so the element is scrolled into view first."""
        self._require_session("click_element")
        result = self.execute_script(CLICK_SCRIPT, [element_reference(element_id)])
        if not isinstance(result, dict):
            return
        info = result.get("info")
        info = info if isinstance(info, dict) else {}
        if result.get("success") is False:
            error = result.get("error")
            logger.info("click_failed element=%s info=%s", element_id, info)
            raise ElementInteractionError(
                action="click_element",
                reason=f"click failed: {error if isinstance(error, str) else 'unknown error'}",
                details={"element_id": element_id, "info": info},
            )
        logger.debug("click_ok element=%s info=%s", element_id, info)

    def send_keys(self, element_id: str, text: str) -> None:
        path = f"/element/{urllib.parse.quote(element_id, safe='')}/value"
        self._command("send_keys", "POST", path, {"text": text}, decode=False)

    # ── Window, cookies ──

    def set_window_size(self, width: int, height: int) -> None:
        self._command("set_window_size", "POST", "/window/rect", {"width": width, "height": height}, decode=False)

    def get_all_cookies(self) -> list[dict[str, Any]]:
        value = self._command("get_all_cookies", "GET", "/cookie")
        if not isinstance(value, list) or not all(isinstance(c, dict) for c in value):
            raise DecodeError(action="get_all_cookies", reason="cookie value is not a list of objects")
        return value

    # ── Screenshots ──

    def take_screenshot(self) -> bytes:
        """PNG of the visible viewport; falls back to the full capture when measuring or cropping fails."""
        self._require_session("take_screenshot")
        try:
            viewport = self.execute_script(VIEWPORT_SCRIPT, [])
        except NoActiveSession:
            raise
        except WebDriverError as exc:
            logger.warning("viewport_probe_failed reason=%s, using full screenshot", exc)
            return self._take_full_screenshot()

        dims = _parse_viewport(viewport)
        if dims is None:
            logger.warning("viewport_invalid value=%r, using full screenshot", viewport)
            return self._take_full_screenshot()
        target_w, target_h = dims
        logger.debug("viewport_target width=%d height=%d", target_w, target_h)

        full = self._take_full_screenshot()
        try:
            return crop_top_left(full, target_w, target_h)
        except ImageDecodeError as exc:
            logger.warning("screenshot_crop_failed reason=%s, returning full screenshot", exc)
            return full

    def _take_full_screenshot(self) -> bytes:
        value = self._command("take_screenshot", "GET", "/screenshot")
        if not isinstance(value, str):
            raise DecodeError(action="take_screenshot", reason="screenshot value is not a string")
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(action="take_screenshot", reason=f"failed to decode base64 screenshot: {exc}") from exc
