"""Tests for deadline-bounded waiting."""
import time

import pytest

from cdp_kit.engine.errors import GotoTimeoutError, WaitTimeoutError
from cdp_kit.engine.waiter import Deadline, EventWaiter, wait_finish, wait_until

from conftest import FakeCDPSession, FakePage


def test_deadline_remaining_counts_down():
    d = Deadline(1000)
    assert 0 < d.remaining() <= 1000
    assert not d.expired


def test_deadline_zero_is_expired():
    d = Deadline(0)
    assert d.expired
    assert d.remaining() == 0


def test_wait_finish_returns_result():
    assert wait_finish(1000, lambda deadline: 42) == 42


def test_wait_finish_overrun_raises_error_cls():
    def slow(deadline):
        time.sleep(0.03)
        return "late"

    with pytest.raises(GotoTimeoutError):
        wait_finish(10, slow, error_cls=GotoTimeoutError)


def test_wait_finish_translates_inner_timeout():
    def inner(deadline):
        raise WaitTimeoutError("inner")

    with pytest.raises(GotoTimeoutError) as exc:
        wait_finish(1000, inner, error_cls=GotoTimeoutError, message="goto() timeout")
    assert str(exc.value) == "goto() timeout"


def test_wait_finish_propagates_other_errors():
    def broken(deadline):
        raise ValueError("boom")

    with pytest.raises(ValueError):
        wait_finish(1000, broken)


def test_wait_until_returns_truthy_value():
    page = FakePage()
    values = iter([None, 0, "ready"])
    assert wait_until(lambda: next(values), page.wait_for_timeout, 1000) == "ready"
    assert len(page.waited) == 2


def test_wait_until_times_out():
    page = FakePage()
    with pytest.raises(WaitTimeoutError):
        wait_until(lambda: False, page.wait_for_timeout, 30, poll_interval=5)
    assert all(ms <= 5 for ms in page.waited)


def test_event_waiter_catches_event_during_command():
    """An event emitted while the triggering command runs is not lost."""
    cdp = FakeCDPSession()
    page = FakePage()
    cdp.responses["Page.navigate"] = lambda params: cdp.emit("Page.loadEventFired", {"timestamp": 1.0}) or {}

    with EventWaiter(cdp, "Page.loadEventFired") as load:
        cdp.send("Page.navigate", {"url": "http://example.com/"})
        payload = load.wait(page.wait_for_timeout, 1000)

    assert payload == {"timestamp": 1.0}
    assert page.waited == []
    assert cdp.handlers["Page.loadEventFired"] == []


def test_event_waiter_event_from_pump():
    cdp = FakeCDPSession()
    page = FakePage()
    page.on_pump.append(lambda: cdp.emit("Page.loadEventFired", {"timestamp": 2.0}))

    with EventWaiter(cdp, "Page.loadEventFired") as load:
        assert load.wait(page.wait_for_timeout, 1000)["timestamp"] == 2.0


def test_event_waiter_predicate_filters():
    cdp = FakeCDPSession()
    page = FakePage()
    with EventWaiter(cdp, "Network.responseReceived",
                     predicate=lambda p: p["response"]["url"] == "b") as waiter:
        cdp.emit("Network.responseReceived", {"response": {"url": "a"}})
        assert not waiter.fired
        cdp.emit("Network.responseReceived", {"response": {"url": "b"}})
        assert waiter.wait(page.wait_for_timeout, 100)["response"]["url"] == "b"


def test_event_waiter_timeout_removes_listener():
    cdp = FakeCDPSession()
    page = FakePage()
    with pytest.raises(WaitTimeoutError) as exc:
        with EventWaiter(cdp, "Page.loadEventFired") as load:
            load.wait(page.wait_for_timeout, 20)
    assert "Page.loadEventFired" in str(exc.value)
    assert cdp.handlers["Page.loadEventFired"] == []
