"""Shared fakes: a CDP session and page that need no browser."""
import time
from collections import defaultdict
from unittest.mock import MagicMock

import pytest

from cdp_kit.session import Session


class FakeCDPSession:
    """Records ``send()`` calls and dispatches events to registered handlers.

    ``responses`` maps a method to a result dict, an exception instance, or
    a callable ``(params) -> result``. ``Runtime.evaluate`` is answered from
    rules added with :meth:`on_evaluate`.
    """

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.responses: dict = {}
        self.handlers: dict[str, list] = defaultdict(list)
        self.detached = False
        self._evaluate_rules: list[tuple[str, object]] = []
        self.evaluate_exception: dict | None = None

    def send(self, method, params=None):
        params = params or {}
        self.calls.append((method, params))
        if method == "Runtime.evaluate" and method not in self.responses:
            return self._evaluate(params.get("expression", ""))
        resp = self.responses.get(method, {})
        if callable(resp):
            resp = resp(params)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def on_evaluate(self, needle: str, value):
        """Answer expressions containing *needle* with *value* (or ``value(expr)``)."""
        self._evaluate_rules.append((needle, value))

    def _evaluate(self, expression):
        if self.evaluate_exception is not None:
            return {"result": {}, "exceptionDetails": self.evaluate_exception}
        for needle, value in self._evaluate_rules:
            if needle in expression:
                if callable(value):
                    value = value(expression)
                return {"result": {"type": "object", "value": value}}
        return {"result": {"type": "undefined"}}

    def on(self, event, handler):
        self.handlers[event].append(handler)

    def once(self, event, handler):
        def wrapper(payload):
            self.remove_listener(event, wrapper)
            handler(payload)
        self.on(event, wrapper)

    def remove_listener(self, event, handler):
        self.handlers[event].remove(handler)

    def emit(self, event, payload=None):
        for handler in list(self.handlers.get(event, [])):
            handler(payload or {})

    def detach(self):
        self.detached = True

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    def params_for(self, method) -> list[dict]:
        return [p for m, p in self.calls if m == method]


class FakePage:
    """Stands in for a Playwright page; ``wait_for_timeout`` runs queued hooks."""

    def __init__(self):
        self.waited: list[float] = []
        self.on_pump: list = []
        self.url = "about:blank"

    def wait_for_timeout(self, ms):
        self.waited.append(ms)
        for hook in list(self.on_pump):
            hook()
        time.sleep(min(ms, 10) / 1000.0)


TARGETS = [
    {"targetId": "SW1", "type": "service_worker", "url": "https://example.com/sw.js"},
    {"targetId": "T1", "type": "page", "url": "about:blank"},
]


@pytest.fixture
def cdp():
    client = FakeCDPSession()
    client.responses["Browser.getVersion"] = {"product": "HeadlessChrome/120.0.6099.71"}
    return client


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture
def browser_cdp():
    client = FakeCDPSession()
    client.responses["Target.getTargets"] = {"targetInfos": list(TARGETS)}
    return client


@pytest.fixture
def make_session(cdp, page, browser_cdp, monkeypatch):
    """Factory for sessions wired to the fakes instead of a real browser."""
    created = []

    def fake_connect(self):
        self.browser = MagicMock()
        self._browser_client = browser_cdp
        self.page, self.client = page, cdp
        self._target_id = "T1"

    monkeypatch.setattr(Session, "_connect", fake_connect)

    def factory(**overrides):
        overrides.setdefault("launch_browser", False)
        s = Session(**overrides)
        created.append(s)
        return s

    yield factory
    for s in created:
        s.close()


@pytest.fixture
def session(make_session):
    s = make_session()
    s.start()
    return s
