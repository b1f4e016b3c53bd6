"""browser: Chrome process, target and device primitives.

Zero session state. macOS and Linux only (uses lsof/signals).
"""
from .chrome import find_system_chrome, launch_chrome, terminate_chrome, kill_stale_cdp, connect_cdp  # noqa: F401
from .cookies import normalize_cookies, load_cookie_file  # noqa: F401
from .devices import Device, DEVICES, add_custom_device, get_device  # noqa: F401
from .targets import default_target, resolve_target_id, find_page_for_target  # noqa: F401
from .ua import parse_chrome_major, build_user_agent, MIN_CHROME_VERSION  # noqa: F401
