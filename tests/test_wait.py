from __future__ import annotations

import pytest

from remote_browser.errors import NoActiveSession, ProtocolError, WaitTimeout
from remote_browser.wait import ConditionPoller, element_state_script, normalize_state


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def _poller(clock: Clock, *, interval: float = 0.1, timeout: float = 1.0) -> ConditionPoller:
    return ConditionPoller(interval=interval, timeout=timeout, clock=clock, sleep=clock.sleep)


def test_condition_checked_before_first_sleep() -> None:
    clock = Clock()
    calls: list[int] = []

    def cond() -> bool:
        calls.append(1)
        return True

    elapsed = _poller(clock).wait_until(cond, "ready")
    assert elapsed == 0.0
    assert len(calls) == 1
    assert clock.now == 0.0


def test_polls_until_true() -> None:
    clock = Clock()
    results = iter([False, False, True])
    elapsed = _poller(clock).wait_until(lambda: next(results), "ready")
    assert elapsed == pytest.approx(0.2)


def test_only_literal_true_satisfies() -> None:
    clock = Clock()
    values = iter(["true", 1, {"ok": True}, None, True])
    elapsed = _poller(clock).wait_until(lambda: next(values), "ready")
    assert elapsed == pytest.approx(0.4)


def test_timeout_fires_between_deadline_and_one_interval_past() -> None:
    clock = Clock()
    with pytest.raises(WaitTimeout) as exc:
        _poller(clock, interval=0.3, timeout=1.0).wait_until(lambda: False, "never")
    assert 1.0 <= clock.now <= 1.3 + 1e-9
    assert exc.value.timeout == 1.0
    assert "timeout waiting for never" in str(exc.value)
    assert exc.value.details["condition"] == "never"
    assert exc.value.details["ticks"] >= 4


def test_script_errors_are_transient() -> None:
    clock = Clock()
    attempts: list[int] = []

    def cond() -> bool:
        attempts.append(1)
        if len(attempts) < 3:
            raise ProtocolError(action="execute_script", reason="navigation in progress", status=500)
        return True

    _poller(clock).wait_until(cond, "ready")
    assert len(attempts) == 3


def test_missing_session_aborts_the_wait() -> None:
    clock = Clock()

    def cond() -> bool:
        raise NoActiveSession(action="execute_script", reason="no active session")

    with pytest.raises(NoActiveSession):
        _poller(clock).wait_until(cond, "ready")
    assert clock.now == 0.0


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        ("attached", "attached"),
        ("detached", "detached"),
        ("visible", "visible"),
        ("hidden", "hidden"),
        ("HIDDEN", "hidden"),
        ("enabled", "visible"),
        ("", "visible"),
        (None, "visible"),
    ],
)
def test_normalize_state(state: str | None, expected: str) -> None:
    assert normalize_state(state) == expected


def test_state_scripts_embed_the_lookup() -> None:
    visible = element_state_script("#submit", "visible")
    assert 'var element = document.querySelector("#submit");' in visible
    assert "style.opacity !== '0'" in visible

    hidden = element_state_script("id=modal", "hidden")
    assert 'document.getElementById("modal")' in hidden
    assert "if (!element) return true;" in hidden

    detached = element_state_script("//div[@class='x']", "detached")
    assert "document.evaluate(" in detached
    assert "element === null" in detached

    attached = element_state_script("role=dialog", "attached")
    assert "(function() {" in attached
    assert "element !== null" in attached


def test_unknown_state_uses_visible_check() -> None:
    assert element_state_script("#a", "bogus") == element_state_script("#a", "visible")
