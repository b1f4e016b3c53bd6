"""Session options.

All timeouts and intervals are in milliseconds, matching the protocol and
Playwright's own conventions.
"""
import os
from dataclasses import dataclass, field, replace
from typing import Any

from .browser.targets import TargetOption, default_target


def _chrome_path_from_env() -> str | None:
    return os.environ.get("CHROME_PATH") or None


@dataclass
class SessionOptions:
    host: str = "localhost"
    port: int = 9222
    launch_browser: bool = True
    headless: bool = True
    user_data_dir: str = ""
    chrome_flags: list[str] = field(default_factory=list)
    chrome_path: str | None = field(default_factory=_chrome_path_from_env)
    enable_extensions: bool = False
    kill_stale_browser: bool = False
    activate_on_start_up: bool = True
    launch_timeout: int = 10000
    wait_timeout: int = 30000
    goto_timeout: int = 30000
    load_timeout: int = 30000
    evaluate_timeout: int = 30000
    wait_function_polling_interval: int = 100
    type_interval: int = 20
    target: TargetOption = default_target
    user_agent: str | None = None
    headers: dict[str, str] | None = None

    def merged(self, **overrides: Any) -> "SessionOptions":
        """Copy with *overrides* applied; unknown names raise ``TypeError``."""
        return replace(self, **overrides)
