"""Browser session lifecycle and the command façade.

A :class:`Session` is one connection to one browser tab. It optionally
launches Chrome, connects Playwright over CDP, picks the target tab and
opens a raw ``CDPSession`` on it. Every public method lazily starts the
session, so ``Session().goto(url)`` works without an explicit ``start()``.

Live sessions are tracked module-wide; :meth:`Session.cleanup` closes all of
them, and a SIGINT handler does the same for sessions that launched their
own browser.
"""
import itertools
import json
import logging
import signal
import threading
import time
import uuid
from typing import Any, Callable
from urllib.parse import urljoin

from playwright.sync_api import sync_playwright

from . import capture
from .browser.chrome import (
    connect_cdp,
    find_system_chrome,
    kill_stale_cdp,
    launch_chrome,
    terminate_chrome,
)
from .browser.cookies import load_cookie_file, needs_url, normalize_cookies
from .browser.devices import get_device
from .browser.targets import find_page_for_target, page_targets, resolve_target_id
from .browser.ua import MIN_CHROME_VERSION, parse_chrome_major
from .config import SessionOptions
from .document import Document
from .engine.errors import (
    ConnectionFailedError,
    GotoTimeoutError,
    InvalidArgumentError,
    LaunchError,
    WaitTimeoutError,
)
from .engine.scripts import (
    build_inject_css,
    build_inject_js,
    complete_url,
    make_send_to_host,
    module_to_function_sources,
    normalize_url,
)
from .engine.waiter import EventWaiter, wait_finish

log = logging.getLogger(__name__)

_instances: list["Session"] = []
_instance_ids = itertools.count(1)

_sigint_installed = False
_previous_sigint: Any = None

# Page-side function name used by receive_message().
HOST_FUNCTION = "sendToHost"

_ENABLED_DOMAINS = ("DOM", "Network", "Page", "Runtime", "Console")


def _on_sigint(signum, frame):
    log.info("SIGINT: closing %d browser session(s)", len(_instances))
    Session.cleanup()
    if callable(_previous_sigint):
        _previous_sigint(signum, frame)
    else:
        raise KeyboardInterrupt


def _install_sigint_handler() -> None:
    """Close launched browsers on Ctrl-C. Main thread only (signal module rule)."""
    global _sigint_installed, _previous_sigint
    if _sigint_installed or threading.current_thread() is not threading.main_thread():
        return
    _previous_sigint = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, _on_sigint)
    _sigint_installed = True


def _header(headers: dict, name: str) -> str | None:
    name = name.lower()
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value
    return None


class Session(Document):
    """One browser tab driven over the Chrome DevTools Protocol."""

    def __init__(self, options: SessionOptions | None = None, *,
                 playwright: Any = None, event_logger: Any = None, **overrides: Any):
        self.options = (options or SessionOptions()).merged(**overrides)
        self.instance_id = next(_instance_ids)
        self.client = None
        self.page = None
        self.browser = None
        self.launcher = None
        self.chrome_version: int | None = None
        self.message_prefix: str | None = None
        self.emulate_mode = False
        self.current_emulate_device_name: str | None = None
        self.current_device_scale_factor: float | None = None
        self.user_agent_before_emulate: str | None = None
        self._playwright = playwright
        self._owns_playwright = False
        self._browser_client = None
        self._target_id: str | None = None
        self._listeners: dict[str, list[Callable]] = {}
        self._screencast_handler: Callable | None = None
        self._event_logger = event_logger
        self._started_at = 0.0

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self):
        state = "open" if self.client is not None else "closed"
        return f"<Session #{self.instance_id} {self.options.host}:{self.options.port} {state}>"

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def start(self, starting_url: str | None = None) -> None:
        """Connect to the browser, launching it first when configured to.

        Idempotent. On any failure everything acquired so far (launched
        process, Playwright driver, CDP sessions) is released before the
        error propagates.
        """
        if starting_url is None:
            starting_url = "about:blank"
        if self.client is not None:
            return

        launched = False
        try:
            if self.options.launch_browser and self.launcher is None:
                self.launcher = self._launch(starting_url)
                launched = True
                _install_sigint_handler()
            self._connect()
            self._initialize()
        except Exception:
            self._teardown()
            raise

        _instances.append(self)
        self._started_at = time.monotonic()
        log.info("Session #%d started (Chrome %s)", self.instance_id, self.chrome_version)
        if self._event_logger is not None:
            self._event_logger.log_session_start(
                self.instance_id, self.options.host, self.options.port,
                launched, self.chrome_version,
            )

    def _ensure_playwright(self) -> None:
        if self._playwright is None:
            self._playwright = sync_playwright().start()
            self._owns_playwright = True

    def _launch(self, starting_url: str):
        """Spawn Chrome: configured path, then system Chrome, then Playwright's bundled Chromium."""
        chrome_path = self.options.chrome_path or find_system_chrome()
        if not chrome_path:
            self._ensure_playwright()
            chrome_path = self._playwright.chromium.executable_path
            log.info("No system Chrome found, using Playwright Chromium")
        if not chrome_path:
            raise LaunchError("Chrome executable not found; set chrome_path or CHROME_PATH")
        if self.options.kill_stale_browser:
            kill_stale_cdp(port=self.options.port)
        return launch_chrome(
            chrome_path, complete_url(starting_url),
            host=self.options.host,
            port=self.options.port,
            headless=self.options.headless,
            user_data_dir=self.options.user_data_dir,
            enable_extensions=self.options.enable_extensions,
            extra_args=self.options.chrome_flags,
            launch_timeout=self.options.launch_timeout,
        )

    def _connect(self) -> None:
        self._ensure_playwright()
        try:
            self.browser = connect_cdp(self._playwright, self.options.host, self.options.port)
        except Exception as e:
            raise ConnectionFailedError(
                f"cannot connect to {self.options.host}:{self.options.port}: {e}"
            ) from e
        self._browser_client = self.browser.new_browser_cdp_session()
        infos = self._browser_client.send("Target.getTargets").get("targetInfos", [])
        target_id = resolve_target_id(self.options.target, infos)
        if not target_id:
            raise ConnectionFailedError("no page target to attach to")
        self.page, self.client = find_page_for_target(self.browser, target_id)
        if self.client is None:
            raise ConnectionFailedError(f"target {target_id} is not an attachable page")
        self._target_id = target_id

    def _initialize(self) -> None:
        for domain in _ENABLED_DOMAINS:
            self.client.send(f"{domain}.enable")
        self.chrome_version = self._get_chrome_version()
        if self.chrome_version is not None and self.chrome_version < MIN_CHROME_VERSION:
            log.warning("Chrome %d is older than %d; some commands may fail",
                        self.chrome_version, MIN_CHROME_VERSION)
        if self.options.activate_on_start_up:
            self._browser_client.send("Target.activateTarget", {"targetId": self._target_id})
        if self.options.user_agent is not None:
            self.user_agent(self.options.user_agent)
        if self.options.headers is not None:
            self.headers(self.options.headers)

    def _get_chrome_version(self) -> int | None:
        product = None
        try:
            product = self.client.send("Browser.getVersion").get("product")
        except Exception as e:
            log.debug("Browser.getVersion unavailable: %s", e)
        if not product:
            product = self.evaluate("return navigator.userAgent")
        return parse_chrome_major(product)

    def _check_start(self, starting_url: str | None = None) -> None:
        if self.client is None:
            self.start(starting_url)

    def close(self) -> bool:
        """Disconnect and stop a launched browser. False if not started."""
        if self.client is None:
            return False
        self._teardown()
        duration = time.monotonic() - self._started_at
        log.info("Session #%d closed", self.instance_id)
        if self._event_logger is not None:
            self._event_logger.log_session_close(self.instance_id, duration)
        return True

    def _teardown(self) -> None:
        for cdp in (self.client, self._browser_client):
            if cdp is None:
                continue
            try:
                cdp.detach()
            except Exception as e:
                log.debug("Session #%d: CDP session detach failed: %s", self.instance_id, e)
        if self.browser is not None:
            try:
                self.browser.close()
            except Exception as e:
                log.warning(f"Failed to close browser connection cleanly: {e}")
        if self._owns_playwright and self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                log.warning(f"Failed to stop Playwright driver: {e}")
            self._playwright = None
            self._owns_playwright = False
        if self.launcher is not None:
            terminate_chrome(self.launcher)
            self.launcher = None
        self.client = None
        self.page = None
        self.browser = None
        self._browser_client = None
        self._listeners.clear()
        self._screencast_handler = None
        if self in _instances:
            _instances.remove(self)

    @classmethod
    def cleanup(cls) -> None:
        """Close every live session."""
        for session in list(_instances):
            try:
                session.close()
            except Exception as e:
                log.warning("Failed to close session #%d: %s", session.instance_id, e)

    @staticmethod
    def live_sessions() -> list["Session"]:
        return list(_instances)

    def get_page_targets(self) -> list[dict]:
        self._check_start()
        infos = self._browser_client.send("Target.getTargets").get("targetInfos", [])
        return page_targets(infos)

    # ── Navigation ──────────────────────────────────────────────────────────

    def goto(self, url: str, wait_load_event: bool = True) -> dict | None:
        """Navigate and return the main document's ``Network.Response``.

        Redirects are followed so the returned response is the final hop's.
        Returns None if no matching response was observed (e.g. cached or
        ``about:`` pages). Raises :class:`GotoTimeoutError` when navigation
        (and the load event, if waited for) overruns ``goto_timeout``.
        """
        url = normalize_url(url, keep_fragment=True)
        self._check_start(url)
        tracked = {"url": normalize_url(url), "response": None}

        def on_request(payload):
            redirect = payload.get("redirectResponse")
            if redirect and redirect.get("url") == tracked["url"]:
                location = _header(redirect.get("headers", {}), "location")
                if location:
                    tracked["url"] = normalize_url(urljoin(tracked["url"], location))

        def on_response(payload):
            response = payload.get("response", {})
            if response.get("url") == tracked["url"]:
                tracked["response"] = response

        def navigate(deadline):
            with EventWaiter(self.client, "Page.loadEventFired") as load:
                result = self.client.send("Page.navigate", {"url": url})
                if result.get("errorText"):
                    log.warning("Navigation to %s failed: %s", url, result["errorText"])
                if wait_load_event:
                    load.wait(self._pump, deadline.remaining())

        timeout = self.options.goto_timeout
        started = time.monotonic()
        self.on("Network.requestWillBeSent", on_request)
        self.on("Network.responseReceived", on_response)
        try:
            wait_finish(timeout, navigate, error_cls=GotoTimeoutError, message="goto() timeout")
        except GotoTimeoutError:
            self._log_timeout("goto", timeout)
            raise
        finally:
            self.remove_listener("Network.responseReceived", on_response)
            self.remove_listener("Network.requestWillBeSent", on_request)

        response = tracked["response"]
        if self._event_logger is not None:
            self._event_logger.log_goto(
                self.instance_id, url,
                response.get("status") if response else None,
                time.monotonic() - started,
            )
        return response

    def _wait_load_after(self, action: Callable[[], Any] | None = None) -> None:
        timeout = self.options.load_timeout

        def run(deadline):
            with EventWaiter(self.client, "Page.loadEventFired") as load:
                if action is not None:
                    action()
                load.wait(self._pump, deadline.remaining())

        try:
            wait_finish(timeout, run, message="load event timeout")
        except WaitTimeoutError:
            self._log_timeout("load", timeout)
            raise

    def wait_load_event(self) -> None:
        """Block until the next ``Page.loadEventFired`` (``load_timeout``)."""
        self._check_start()
        self._wait_load_after()

    def forward(self) -> None:
        self._check_start()
        self._wait_load_after(
            lambda: self.client.send("Runtime.evaluate", {"expression": "window.history.forward()"})
        )

    def back(self) -> None:
        self._check_start()
        self._wait_load_after(
            lambda: self.client.send("Runtime.evaluate", {"expression": "window.history.back()"})
        )

    def reload(self, ignore_cache: bool = False,
               script_to_evaluate_on_load: str | None = None) -> None:
        self._check_start()
        params: dict = {"ignoreCache": ignore_cache}
        if script_to_evaluate_on_load is not None:
            params["scriptToEvaluateOnLoad"] = script_to_evaluate_on_load
        self.client.send("Page.reload", params)

    # ── Page setup ──────────────────────────────────────────────────────────

    def user_agent(self, ua: str) -> dict:
        self._check_start()
        return self.client.send("Network.setUserAgentOverride", {"userAgent": ua})

    def headers(self, headers: dict[str, str]) -> dict:
        """Send *headers* with every request, e.g. ``{"X-Requested-By": "foo"}``."""
        self._check_start()
        return self.client.send("Network.setExtraHTTPHeaders", {"headers": headers})

    def ignore_certificate_errors(self) -> None:
        self._check_start()
        self.client.send("Security.enable")
        self.client.send("Security.setIgnoreCertificateErrors", {"ignore": True})

    def console(self, callback: Callable[[str, dict], Any]) -> None:
        """Call ``callback(text, message)`` for each page console message.

        Messages sent through :meth:`receive_message`'s channel are skipped.
        """
        self._check_start()

        def on_message(payload):
            try:
                message = payload.get("message", {})
                text = message.get("text")
                if text is None:
                    return
                prefix = self.message_prefix
                if prefix is None or not text.startswith(prefix + ":"):
                    callback(text, message)
            except Exception as e:
                log.warning("console callback failed: %s", e)

        self.on("Console.messageAdded", on_message)

    def receive_message(self, callback: Callable[[list], Any]) -> None:
        """Expose ``sendToHost(...)`` in the page; its arguments reach *callback* as a list.

        The function is re-installed on every new document.
        """
        self._check_start()
        prefix = str(uuid.uuid4())
        self.message_prefix = prefix
        marker = prefix + ":"
        source = module_to_function_sources({HOST_FUNCTION: make_send_to_host(prefix)})[0]
        self.client.send("Page.addScriptToEvaluateOnNewDocument", {"source": source})
        self.define_function(source)

        def on_message(payload):
            try:
                text = payload.get("message", {}).get("text")
                if text and text.startswith(marker):
                    callback(json.loads(text[len(marker):]))
            except Exception as e:
                log.warning("receive_message callback failed: %s", e)

        self.on("Console.messageAdded", on_message)

    def define_function(self, definition) -> None:
        """Define global functions in the page.

        *definition* is a named function declaration, a list of them, or a
        ``{"name": "function source"}`` dict.
        """
        self._check_start()
        if isinstance(definition, dict):
            sources = module_to_function_sources(definition)
        elif isinstance(definition, (list, tuple)):
            sources = list(definition)
        else:
            sources = [definition]
        for source in sources:
            self.client.send("Runtime.evaluate", {"expression": source})

    def inject(self, kind: str, file_or_bytes) -> Any:
        """Inject a ``"js"`` or ``"css"`` payload from a path or raw bytes."""
        if kind not in ("js", "css"):
            raise InvalidArgumentError(f"found invalid type: {kind!r}")
        if isinstance(file_or_bytes, (bytes, bytearray)):
            data = bytes(file_or_bytes).decode("utf-8")
        else:
            with open(file_or_bytes, "r", encoding="utf-8") as f:
                data = f.read()
        if kind == "js":
            return self.evaluate(build_inject_js(data))
        return self.evaluate(build_inject_css(data))

    # ── Input ───────────────────────────────────────────────────────────────

    def _mouse(self, event_type: str, x: float, y: float, defaults: dict, options: dict) -> None:
        self._check_start()
        params = {"type": event_type, "x": x, "y": y, **defaults, **options}
        self.client.send("Input.dispatchMouseEvent", params)

    def mouse_moved(self, x: float, y: float, **options: Any) -> None:
        self._mouse("mouseMoved", x, y, {}, options)

    def mouse_pressed(self, x: float, y: float, **options: Any) -> None:
        self._mouse("mousePressed", x, y, {"button": "left", "clickCount": 1}, options)

    def mouse_released(self, x: float, y: float, **options: Any) -> None:
        self._mouse("mouseReleased", x, y, {"button": "left", "clickCount": 1}, options)

    def tap(self, x: float, y: float, **options: Any) -> None:
        self._check_start()
        self.client.send("Input.synthesizeTapGesture", {"x": x, "y": y, **options})

    def double_tap(self, x: float, y: float, **options: Any) -> None:
        self._check_start()
        self.client.send("Input.synthesizeTapGesture", {"x": x, "y": y, "tapCount": 2, **options})

    def set_file(self, selector: str, files) -> bool:
        """Attach *files* to a file input. False if nothing to set or no match."""
        self._check_start()
        if isinstance(files, str):
            files = [files]
        if not files:
            return False
        root = self.client.send("DOM.getDocument")["root"]
        node_id = self.client.send("DOM.querySelector", {
            "nodeId": root["nodeId"],
            "selector": selector,
        }).get("nodeId")
        if not node_id:
            return False
        self.client.send("DOM.setFileInputFiles", {"nodeId": node_id, "files": list(files)})
        return True

    # ── Capture ─────────────────────────────────────────────────────────────

    def screenshot(self, format: str = "png", quality: int | None = None,
                   from_surface: bool = True, use_device_resolution: bool = False) -> bytes:
        return capture.screenshot(self, format, quality, from_surface, use_device_resolution)

    def screenshot_document(self, model: str = "scroll", format: str = "png",
                            quality: int | None = None, from_surface: bool = True,
                            use_device_resolution: bool = False) -> bytes:
        return capture.screenshot_document(
            self, model, format, quality, from_surface, use_device_resolution,
        )

    def screenshot_selector(self, selector: str, format: str = "png",
                            quality: int | None = None, from_surface: bool = True,
                            use_device_resolution: bool = False) -> bytes | None:
        return capture.screenshot_selector(
            self, selector, format, quality, from_surface, use_device_resolution,
        )

    def screenshot_multiple_selectors(self, selectors: list[str],
                                      callback: capture.SelectorCallback, **options: Any) -> None:
        capture.screenshot_multiple_selectors(self, selectors, callback, **options)

    def pdf(self, **options: Any) -> bytes:
        return capture.pdf(self, **options)

    def start_screencast(self, callback: Callable[[dict], Any], **options: Any) -> None:
        """Stream ``Page.screencastFrame`` payloads to *callback*; frames are acked after it runs."""
        self._check_start()

        def on_frame(payload):
            try:
                callback(payload)
            except Exception as e:
                log.warning("screencast callback failed: %s", e)
            self.client.send("Page.screencastFrameAck", {"sessionId": payload["sessionId"]})

        if self._screencast_handler is not None:
            self.remove_listener("Page.screencastFrame", self._screencast_handler)
        self._screencast_handler = on_frame
        self.on("Page.screencastFrame", on_frame)
        self.client.send("Page.startScreencast", options)

    def stop_screencast(self) -> None:
        self._check_start()
        self.client.send("Page.stopScreencast")
        if self._screencast_handler is not None:
            self.remove_listener("Page.screencastFrame", self._screencast_handler)
            self._screencast_handler = None

    def _log_capture(self, kind: str, fmt: str, data: bytes) -> None:
        if self._event_logger is not None:
            self._event_logger.log_screenshot(self.instance_id, kind, fmt, len(data))

    def _log_timeout(self, operation: str, timeout: float) -> None:
        log.warning("Session #%d: %s timed out after %sms", self.instance_id, operation, timeout)
        if self._event_logger is not None:
            self._event_logger.log_timeout(self.instance_id, operation, timeout)

    # ── Emulation ───────────────────────────────────────────────────────────

    def set_device_scale_factor(self, device_scale_factor: float) -> None:
        self._check_start()
        screen = self.screen_info()
        if screen.get("devicePixelRatio") == device_scale_factor:
            return
        self.current_device_scale_factor = device_scale_factor
        self.client.send("Emulation.setDeviceMetricsOverride", {
            "width": 0,
            "height": 0,
            "deviceScaleFactor": device_scale_factor,
            "mobile": False,
        })

    def emulate(self, device_name: str) -> None:
        """Emulate a registered device: metrics, touch and user agent."""
        self._check_start()
        device = get_device(device_name)
        if not self.emulate_mode:
            self.user_agent_before_emulate = self.evaluate("return navigator.userAgent")
        self.client.send("Emulation.setDeviceMetricsOverride", {
            "width": device.width,
            "height": device.height,
            "deviceScaleFactor": device.device_scale_factor,
            "mobile": device.mobile,
            "scale": device.page_scale_factor,
        })
        self.client.send("Emulation.setTouchEmulationEnabled", {"enabled": device.touch})
        self.client.send("Emulation.setEmitTouchEventsForMouse", {
            "enabled": device.touch,
            "configuration": "mobile" if device.mobile else "desktop",
        })
        self.user_agent(device.user_agent)
        self.current_emulate_device_name = device_name
        self.emulate_mode = True

    def clear_emulate(self) -> None:
        self._check_start()
        self.client.send("Emulation.clearDeviceMetricsOverride")
        self.client.send("Emulation.setTouchEmulationEnabled", {"enabled": False})
        self.client.send("Emulation.setEmitTouchEventsForMouse", {"enabled": False})
        if self.user_agent_before_emulate:
            self.user_agent(self.user_agent_before_emulate)
        self.emulate_mode = False
        self.current_emulate_device_name = None

    def _restore_emulation_setting(self) -> None:
        """Re-apply device emulation and scale factor after a temporary override."""
        if self.current_emulate_device_name is not None:
            self.emulate(self.current_emulate_device_name)
        if self.current_device_scale_factor:
            self.set_device_scale_factor(self.current_device_scale_factor)

    # ── Network and storage ─────────────────────────────────────────────────

    def block_urls(self, urls: list[str]) -> None:
        self._check_start()
        self.client.send("Network.setBlockedURLs", {"urls": list(urls)})

    def clear_browser_cache(self) -> None:
        self._check_start()
        self.client.send("Network.clearBrowserCache")

    def set_cookie(self, params) -> None:
        """Set one cookie dict or a list; cookies without url/domain use the current page URL."""
        self._check_start()
        current_url = self.evaluate("return location.href") if needs_url(params) else ""
        for cookie in normalize_cookies(params, current_url):
            self.client.send("Network.setCookie", cookie)

    def import_cookies(self, state_path: str) -> int:
        """Load cookies from a storage-state JSON file. Returns how many were set."""
        cookies = load_cookie_file(state_path)
        if cookies:
            self.set_cookie(cookies)
        return len(cookies)

    def delete_cookie(self, name, url: str | None = None) -> None:
        self._check_start()
        names = name if isinstance(name, (list, tuple)) else [name]
        if not url:
            url = self.evaluate("return location.href")
        for n in names:
            self.client.send("Network.deleteCookies", {"name": n, "url": url})

    def clear_all_cookies(self) -> None:
        self._check_start()
        self.client.send("Network.clearBrowserCookies")

    def get_dom_counters(self) -> dict:
        self._check_start()
        return self.client.send("Memory.getDOMCounters")

    def clear_data_for_origin(self, origin: str | None = None, storage_types: str = "all") -> dict:
        self._check_start()
        if origin is None:
            origin = self.evaluate("return location.origin")
        return self.client.send("Storage.clearDataForOrigin", {
            "origin": origin,
            "storageTypes": storage_types,
        })

    # ── Raw protocol access ─────────────────────────────────────────────────

    def send(self, method: str, params: dict | None = None) -> dict:
        self._check_start()
        return self.client.send(method, params)

    def on(self, event: str, callback: Callable) -> None:
        self._check_start()
        self.client.on(event, callback)
        self._listeners.setdefault(event, []).append(callback)

    def once(self, event: str, callback: Callable) -> None:
        self._check_start()

        def wrapper(payload):
            self.remove_listener(event, wrapper)
            callback(payload)

        wrapper.__wrapped__ = callback
        self.on(event, wrapper)

    def remove_listener(self, event: str, callback: Callable) -> None:
        """Remove a listener added via :meth:`on` or :meth:`once`."""
        self._check_start()
        registered = self._listeners.get(event, [])
        for handler in list(registered):
            if handler is callback or getattr(handler, "__wrapped__", None) is callback:
                registered.remove(handler)
                self.client.remove_listener(event, handler)
                return

    def remove_all_listeners(self, event: str | None = None) -> None:
        self._check_start()
        events = [event] if event is not None else list(self._listeners)
        for name in events:
            for handler in self._listeners.pop(name, []):
                self.client.remove_listener(name, handler)
