"""
Remote script values and element-reference wire helpers.

Everything execute/sync returns is JSON, so a script result is one of:
None, bool, int, float, str, list of script values, or a str-keyed dict of
script values. Consumers branch on isinstance; bool is checked before the
numeric types because bool is an int subclass.
"""

from __future__ import annotations

from typing import Union

ScriptValue = Union[None, bool, int, float, str, "list[ScriptValue]", "dict[str, ScriptValue]"]

ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"
LEGACY_ELEMENT_KEY = "ELEMENT"


def element_reference(element_id: str) -> dict[str, str]:
    """Wire form used to pass an element as a script argument."""
    return {ELEMENT_KEY: element_id}


def extract_element_id(value: ScriptValue) -> str | None:
    """Canonical id of a wire element reference, modern key first."""
    if not isinstance(value, dict):
        return None
    modern = value.get(ELEMENT_KEY)
    if isinstance(modern, str) and modern:
        return modern
    legacy = value.get(LEGACY_ELEMENT_KEY)
    if isinstance(legacy, str) and legacy:
        return legacy
    return None


def extract_element_ids(value: ScriptValue) -> list[str]:
    """Ids from a list of element references; entries that are not references are skipped."""
    if not isinstance(value, list):
        return []
    ids: list[str] = []
    for item in value:
        element_id = extract_element_id(item)
        if element_id is not None:
            ids.append(element_id)
    return ids


def as_number(value: ScriptValue) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def is_true(value: ScriptValue) -> bool:
    """Only a literal boolean true counts; truthy strings or numbers do not."""
    return value is True
