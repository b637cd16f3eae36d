from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .values import ScriptValue, element_reference

if TYPE_CHECKING:
    from .client import WebDriverClient

_LOGGER = logging.getLogger("remote_browser.locator")

TEXT_CONTENT_SCRIPT = """
var element = arguments[0];
if (!element) return null;
return element.textContent;
"""


class Locator:
    """Reusable handle to an element.

    Bound to a selector, it looks the element up again on every action. Bound
    to an element id (as produced by all()), it never re-queries.
    """

    def __init__(self, client: WebDriverClient, selector: str, element_id: str | None = None) -> None:
        self.client = client
        self.selector = selector
        self.element_id = element_id or None

    def __repr__(self) -> str:
        if self.element_id:
            return f"Locator({self.selector!r}, element_id={self.element_id!r})"
        return f"Locator({self.selector!r})"

    def _resolve(self) -> str:
        if self.element_id:
            return self.element_id
        return self.client.find_element(self.selector)

    def click(self) -> None:
        self.client.click_element(self._resolve())

    def count(self) -> int:
        return self.client.count_elements(self.selector)

    def all(self) -> list[Locator]:
        ids = self.client.find_all_elements(self.selector)
        return [Locator(self.client, self.selector, element_id) for element_id in ids]

    def wait_for(self, state: str = "visible") -> None:
        self.client.wait_for_selector(self.selector, state)

    def text_content(self) -> ScriptValue:
        return self.client.execute_script(TEXT_CONTENT_SCRIPT, [element_reference(self._resolve())])

    def type(self, text: str, delay: float = 0) -> None:
        """Send `text` to the element.

        `delay` is accepted for API compatibility only: send-keys delivers the
        whole string in one command, so there is no per-keystroke pacing.
        """
        if delay:
            _LOGGER.debug("type_delay_ignored selector=%s delay=%s", self.selector, delay)
        self.client.send_keys(self._resolve(), text)

    def fill(self, text: str) -> None:
        self.client.send_keys(self._resolve(), text)
