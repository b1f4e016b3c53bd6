"""Tests for DOM/script operations against a fake CDP session."""
import json
import re
import time

import pytest

from cdp_kit.engine.errors import (
    EvaluateError,
    EvaluateTimeoutError,
    InvalidArgumentError,
    SelectorNotFoundError,
    WaitTimeoutError,
)


def test_evaluate_body_returns_value(session, cdp):
    cdp.on_evaluate("document.title", "Example Domain")
    assert session.evaluate("return document.title") == "Example Domain"

    params = cdp.params_for("Runtime.evaluate")[-1]
    assert params["returnByValue"] is True
    assert params["awaitPromise"] is True
    assert params["timeout"] == 30000


def test_evaluate_function_with_args(session, cdp):
    cdp.on_evaluate("a + b", 5)
    assert session.evaluate("(a, b) => a + b", 2, 3) == 5
    assert "((a, b) => a + b)(2, 3)" in cdp.params_for("Runtime.evaluate")[-1]["expression"]


def test_evaluate_undefined_is_none(session):
    assert session.evaluate("return undefined") is None


def test_evaluate_exception_raises(session, cdp):
    cdp.evaluate_exception = {
        "text": "Uncaught",
        "exception": {"description": "ReferenceError: foo is not defined"},
    }
    with pytest.raises(EvaluateError, match="ReferenceError"):
        session.evaluate("return foo")


def _never_settles(params):
    """Answer like a page whose promise never settles: the page-side timer rejects."""
    m = re.search(r'reject\((".*?")\), (\d+)\)', params["expression"])
    marker, ms = json.loads(m.group(1)), int(m.group(2))
    time.sleep(ms / 1000.0)
    return {
        "result": {"type": "string", "value": marker},
        "exceptionDetails": {
            "text": "Uncaught (in promise)",
            "exception": {"type": "string", "value": marker},
        },
    }


def test_evaluate_enforces_timeout_in_page(make_session, cdp):
    s = make_session(evaluate_timeout=100)
    s.start()
    cdp.responses["Runtime.evaluate"] = _never_settles
    started = time.monotonic()
    with pytest.raises(EvaluateTimeoutError, match="100ms"):
        s.evaluate("() => new Promise(() => {})")
    assert time.monotonic() - started < 1.0

    expression = cdp.params_for("Runtime.evaluate")[-1]["expression"]
    assert "Promise.race" in expression
    assert "(() => new Promise(() => {}))()" in expression


def test_evaluate_per_call_timeout(session, cdp):
    cdp.responses["Runtime.evaluate"] = _never_settles
    with pytest.raises(EvaluateTimeoutError):
        session.evaluate("return 1", timeout=50)
    params = cdp.params_for("Runtime.evaluate")[-1]
    assert params["timeout"] == 50
    assert "), 50)" in params["expression"]


def test_evaluate_rejection_is_not_a_timeout(session, cdp):
    cdp.evaluate_exception = {
        "text": "Uncaught (in promise)",
        "exception": {"type": "string", "value": "boom"},
    }
    with pytest.raises(EvaluateError) as exc:
        session.evaluate("() => Promise.reject('boom')")
    assert not isinstance(exc.value, EvaluateTimeoutError)


def test_sleep_pumps_events(session, page):
    session.wait(250)
    assert page.waited[-1] == 250


def test_wait_for_selector_after_pumps(session, cdp):
    state = {"checks": 0}

    def exists(expr):
        state["checks"] += 1
        return state["checks"] >= 3

    cdp.on_evaluate("document.querySelector(s) !== null", exists)
    session.wait("#app")
    assert state["checks"] == 3


def test_wait_for_selector_timeout(make_session, cdp):
    session = make_session(wait_timeout=30, wait_function_polling_interval=5)
    cdp.on_evaluate("document.querySelector(s) !== null", False)
    with pytest.raises(WaitTimeoutError, match="#never"):
        session.wait("#never")


def test_wait_function(session, cdp):
    cdp.on_evaluate("window.ready", {"ok": True})
    assert session.wait("() => window.ready") == {"ok": True}


def test_wait_rejects_other_types(session):
    with pytest.raises(InvalidArgumentError):
        session.wait(["#a"])


def test_click_missing_element(session, cdp):
    cdp.on_evaluate("el.click()", {"found": False})
    with pytest.raises(SelectorNotFoundError):
        session.click("#missing")


def test_click_waits_for_load(session, cdp, page):
    def click(expr):
        cdp.emit("Page.loadEventFired", {"timestamp": 1})
        return {"found": True}

    cdp.on_evaluate("el.click()", click)
    session.click("a.next", wait_load_event=True)
    assert '"a.next"' in cdp.params_for("Runtime.evaluate")[-1]["expression"]
    assert cdp.handlers["Page.loadEventFired"] == []


def test_type_dispatches_chars(session, cdp, page):
    cdp.on_evaluate("el.focus()", {"found": True})
    session.type("#q", "hi")
    keys = cdp.params_for("Input.dispatchKeyEvent")
    assert keys == [{"type": "char", "text": "h"}, {"type": "char", "text": "i"}]
    assert page.waited.count(20) == 2


def test_insert_embeds_value(session, cdp):
    cdp.on_evaluate("el.value", {"found": True})
    session.insert("#name", 'O"Brien')
    assert 'el.value = "O\\"Brien"' in cdp.params_for("Runtime.evaluate")[-1]["expression"]


def test_check_and_select(session, cdp):
    cdp.on_evaluate("el.checked", {"found": True})
    cdp.on_evaluate("el.value", {"found": True})
    session.check("#agree")
    assert "el.checked = true" in cdp.params_for("Runtime.evaluate")[-1]["expression"]
    session.uncheck("#agree")
    assert "el.checked = false" in cdp.params_for("Runtime.evaluate")[-1]["expression"]
    session.select("#size", "xl")
    assert 'el.value = "xl"' in cdp.params_for("Runtime.evaluate")[-1]["expression"]


def test_rect_and_rect_all(session, cdp):
    cdp.on_evaluate("querySelectorAll", [{"left": 0, "top": 0, "width": 5, "height": 5}])
    cdp.on_evaluate("getBoundingClientRect", {"left": 10, "top": 20, "width": 100, "height": 50})
    assert session.rect("#box") == {"left": 10, "top": 20, "width": 100, "height": 50}
    assert len(session.rect_all("li")) == 1


def test_scroll(session, cdp):
    session.scroll(0, 100)
    assert "((x, y) => window.scrollBy(x, y))(0, 100)" in cdp.params_for("Runtime.evaluate")[-1]["expression"]
    session.scroll_to(0, 0)
    assert "window.scrollTo" in cdp.params_for("Runtime.evaluate")[-1]["expression"]
