"""Smoke tests: public modules are importable."""


def test_top_level_imports():
    from cdp_kit import (
        Session,
        SessionOptions,
        Device,
        add_custom_device,
        CdpKitError,
        ErrorSignal,
        EvaluateError,
        EvaluateTimeoutError,
        GotoTimeoutError,
        WaitTimeoutError,
    )
    assert callable(Session)
    assert callable(SessionOptions)
    assert callable(Device)
    assert callable(add_custom_device)
    assert issubclass(GotoTimeoutError, WaitTimeoutError)
    assert issubclass(EvaluateTimeoutError, WaitTimeoutError)
    assert issubclass(EvaluateError, CdpKitError)
    assert ErrorSignal.TIMEOUT.value == "timeout"


def test_browser_imports():
    from cdp_kit.browser import (
        find_system_chrome,
        launch_chrome,
        terminate_chrome,
        kill_stale_cdp,
        connect_cdp,
        normalize_cookies,
        load_cookie_file,
        get_device,
        default_target,
        resolve_target_id,
        find_page_for_target,
        parse_chrome_major,
    )
    assert callable(find_system_chrome)
    assert callable(launch_chrome)
    assert callable(terminate_chrome)
    assert callable(kill_stale_cdp)
    assert callable(connect_cdp)
    assert callable(normalize_cookies)
    assert callable(load_cookie_file)
    assert callable(get_device)
    assert callable(default_target)
    assert callable(resolve_target_id)
    assert callable(find_page_for_target)
    assert callable(parse_chrome_major)


def test_engine_imports():
    from cdp_kit.engine import Deadline, EventWaiter, FullscreenEmulationManager, wait_finish, wait_until
    assert callable(Deadline)
    assert callable(EventWaiter)
    assert callable(FullscreenEmulationManager)
    assert callable(wait_finish)
    assert callable(wait_until)


def test_telemetry_imports():
    from cdp_kit.telemetry import SessionEventLogger
    assert callable(SessionEventLogger)
