"""
Selector micro-language.

Turns strings like "role=button" or "//div[@id='x']" into a strategy, and
generates the lookup script for strategies the protocol has no native
support for.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidArgument


class SelectorStrategy(str, Enum):
    # Native WebDriver "using" values.
    CSS_SELECTOR = "css selector"
    XPATH = "xpath"
    LINK_TEXT = "link text"
    PARTIAL_LINK_TEXT = "partial link text"
    ID = "id"
    CLASS_NAME = "class name"
    TAG_NAME = "tag name"
    # Script-backed.
    TEXT = "text"
    DATA_TEST_ID = "data-testid"
    ARIA_LABEL = "aria-label"
    ROLE = "role"
    VISIBLE_TEXT = "visible-text"


@dataclass(frozen=True)
class ParsedSelector:
    strategy: SelectorStrategy
    value: str
    is_native: bool


# (prefix, strategy, native, strip prefix). Order matters: first match wins.
_PREFIXES: tuple[tuple[str, SelectorStrategy, bool, bool], ...] = (
    ("xpath=", SelectorStrategy.XPATH, True, True),
    ("//", SelectorStrategy.XPATH, True, False),
    ("(//", SelectorStrategy.XPATH, True, False),
    ("text=", SelectorStrategy.TEXT, False, True),
    ("visible-text=", SelectorStrategy.VISIBLE_TEXT, False, True),
    ("id=", SelectorStrategy.ID, True, True),
    ("class=", SelectorStrategy.CLASS_NAME, True, True),
    ("tag=", SelectorStrategy.TAG_NAME, True, True),
    ("link=", SelectorStrategy.LINK_TEXT, True, True),
    ("partial-link=", SelectorStrategy.PARTIAL_LINK_TEXT, True, True),
    ("data-testid=", SelectorStrategy.DATA_TEST_ID, False, True),
    ("aria-label=", SelectorStrategy.ARIA_LABEL, False, True),
    ("role=", SelectorStrategy.ROLE, False, True),
)


def parse_selector(selector: str) -> ParsedSelector:
    for prefix, strategy, native, strip in _PREFIXES:
        if selector.startswith(prefix):
            value = selector[len(prefix) :] if strip else selector
            return ParsedSelector(strategy, value, native)
    return ParsedSelector(SelectorStrategy.CSS_SELECTOR, selector, True)


def escape_double_quotes(value: str) -> str:
    # Not a general JS string escaper; callers must not pass untrusted input.
    return value.replace('"', '\\"')


_DIRECT_TEXT_FILTER = """
    var directText = Array.from(el.childNodes)
        .filter(function(node) { return node.nodeType === 3; })
        .map(function(node) { return node.textContent; })
        .join('').trim();
    return directText === "%(v)s" || el.textContent.trim() === "%(v)s";
"""

_VISIBLE_TEXT_FILTER = """
    if (el.offsetWidth === 0 || el.offsetHeight === 0) return false;
    var style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return false;
    var text = el.textContent ? el.textContent.trim() : '';
    return text.includes("%(v)s");
"""


def selector_script(strategy: SelectorStrategy, value: str) -> str:
    """Script body returning the single best match for a custom strategy, or null."""
    v = escape_double_quotes(value)
    if strategy is SelectorStrategy.TEXT:
        # Document order puts descendants after ancestors; the last match is the deepest.
        return (
            "var elements = Array.from(document.querySelectorAll('*'));\n"
            "var matches = elements.filter(function(el) {"
            + _DIRECT_TEXT_FILTER % {"v": v}
            + "});\n"
            "return matches.length > 0 ? matches[matches.length - 1] : null;"
        )
    if strategy is SelectorStrategy.VISIBLE_TEXT:
        return (
            "var elements = Array.from(document.querySelectorAll('*'));\n"
            "var matches = elements.filter(function(el) {"
            + _VISIBLE_TEXT_FILTER % {"v": v}
            + "});\n"
            "matches.sort(function(a, b) {\n"
            "    return a.getElementsByTagName('*').length - b.getElementsByTagName('*').length;\n"
            "});\n"
            "return matches.length > 0 ? matches[0] : null;"
        )
    if strategy is SelectorStrategy.DATA_TEST_ID:
        return f"return document.querySelector('[data-testid=\"{v}\"]');"
    if strategy is SelectorStrategy.ARIA_LABEL:
        return f"return document.querySelector('[aria-label=\"{v}\"]');"
    if strategy is SelectorStrategy.ROLE:
        return f"return document.querySelector('[role=\"{v}\"]');"
    return f'return document.querySelector("{v}");'


def all_selector_script(strategy: SelectorStrategy, value: str) -> str:
    """Script body returning every match for a custom strategy, as an array."""
    v = escape_double_quotes(value)
    if strategy is SelectorStrategy.TEXT:
        return (
            "var elements = Array.from(document.querySelectorAll('*'));\n"
            "return elements.filter(function(el) {" + _DIRECT_TEXT_FILTER % {"v": v} + "});"
        )
    if strategy is SelectorStrategy.VISIBLE_TEXT:
        return (
            "var elements = Array.from(document.querySelectorAll('*'));\n"
            "return elements.filter(function(el) {" + _VISIBLE_TEXT_FILTER % {"v": v} + "});"
        )
    if strategy is SelectorStrategy.DATA_TEST_ID:
        return f"return Array.from(document.querySelectorAll('[data-testid=\"{v}\"]'));"
    if strategy is SelectorStrategy.ARIA_LABEL:
        return f"return Array.from(document.querySelectorAll('[aria-label=\"{v}\"]'));"
    if strategy is SelectorStrategy.ROLE:
        return f"return Array.from(document.querySelectorAll('[role=\"{v}\"]'));"
    return f'return Array.from(document.querySelectorAll("{v}"));'


def element_lookup_expression(parsed: ParsedSelector) -> str:
    """A JS expression evaluating to the first node matching any strategy, or null."""
    strategy = parsed.strategy
    if strategy is SelectorStrategy.CSS_SELECTOR:
        return f'document.querySelector("{escape_double_quotes(parsed.value)}")'
    if strategy is SelectorStrategy.XPATH:
        xpath = parsed.value.replace("'", "\\'")
        return (
            f"document.evaluate('{xpath}', document, null, "
            "XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue"
        )
    v = escape_double_quotes(parsed.value)
    if strategy is SelectorStrategy.ID:
        return f'document.getElementById("{v}")'
    if strategy is SelectorStrategy.CLASS_NAME:
        return f'(document.getElementsByClassName("{v}")[0] || null)'
    if strategy is SelectorStrategy.TAG_NAME:
        return f'(document.getElementsByTagName("{v}")[0] || null)'
    if strategy is SelectorStrategy.LINK_TEXT:
        return (
            "(Array.from(document.querySelectorAll('a')).find(function(a) {"
            f' return (a.textContent || "").trim() === "{v}"; }}) || null)'
        )
    if strategy is SelectorStrategy.PARTIAL_LINK_TEXT:
        return (
            "(Array.from(document.querySelectorAll('a')).find(function(a) {"
            f' return (a.textContent || "").includes("{v}"); }}) || null)'
        )
    return f"(function() {{ {selector_script(strategy, parsed.value)} }})()"


def is_regex(s: str) -> bool:
    return len(s) >= 2 and s.startswith("/") and s.endswith("/")


def parse_regex(s: str) -> re.Pattern[str]:
    """Compile a /pattern/ literal."""
    if not is_regex(s):
        raise InvalidArgument(action="parse_regex", reason="not a regex pattern", details={"input": s})
    try:
        return re.compile(s[1:-1])
    except re.error as exc:
        raise InvalidArgument(action="parse_regex", reason=f"invalid pattern: {exc}", details={"input": s}) from exc
