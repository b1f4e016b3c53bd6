"""Chrome discovery, remote-debugging launch, and stale-process cleanup.

macOS and Linux only; uses lsof/signals for process management.
"""
import logging
import os
import platform
import shutil
import signal
import subprocess
import tempfile
import time
import urllib.request

from ..engine.errors import LaunchError

log = logging.getLogger(__name__)

# Switches chrome-launcher style tooling passes to keep a scripted profile quiet.
DEFAULT_FLAGS = [
    "--disable-background-networking",
    "--disable-default-apps",
    "--disable-sync",
    "--disable-translate",
    "--metrics-recording-only",
    "--no-first-run",
    "--safebrowsing-disable-auto-update",
]


def find_system_chrome() -> str | None:
    """Find a Chrome, Chromium or Edge binary on the system.

    Returns the path to the browser executable, or None if not found.
    """
    system = platform.system()
    if system == "Darwin":
        candidates = [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
            "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        ]
    elif system == "Linux":
        candidates = [
            "google-chrome",
            "google-chrome-stable",
            "chromium-browser",
            "chromium",
            "microsoft-edge",
            "microsoft-edge-stable",
        ]
    else:
        return None

    for candidate in candidates:
        if system == "Darwin":
            if os.path.isfile(candidate):
                return candidate
        else:
            path = shutil.which(candidate)
            if path:
                return path
    return None


def build_chrome_args(
    chrome_path: str,
    starting_url: str = "about:blank",
    *,
    port: int = 9222,
    headless: bool = True,
    user_data_dir: str = "",
    enable_extensions: bool = False,
    extra_args: list[str] | None = None,
) -> list[str]:
    """Command line for a Chrome process with remote debugging on *port*."""
    args = [chrome_path, f"--remote-debugging-port={port}"]
    args.extend(DEFAULT_FLAGS)
    if user_data_dir:
        args.append(f"--user-data-dir={user_data_dir}")
    if not enable_extensions:
        args.append("--disable-extensions")
    if headless:
        args.extend(["--headless=new", "--disable-gpu"])
    if extra_args:
        args.extend(extra_args)
    args.append(starting_url)
    return args


def terminate_chrome(proc: subprocess.Popen) -> None:
    """Terminate *proc*, escalating to kill if it ignores SIGTERM for 5s.

    The temporary profile :func:`launch_chrome` created for *proc*, if any,
    is removed once the process is gone.
    """
    if proc.poll() is None:
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait(timeout=5)
    profile_dir = getattr(proc, "temp_profile_dir", None)
    if profile_dir:
        shutil.rmtree(profile_dir, ignore_errors=True)
        proc.temp_profile_dir = None


def launch_chrome(
    chrome_path: str,
    starting_url: str = "about:blank",
    *,
    host: str = "localhost",
    port: int = 9222,
    headless: bool = True,
    user_data_dir: str = "",
    enable_extensions: bool = False,
    extra_args: list[str] | None = None,
    launch_timeout: float = 10000,
) -> subprocess.Popen:
    """Launch Chrome with remote debugging and wait until the endpoint answers.

    Without *user_data_dir* a fresh temporary profile is used so the launch
    never attaches to the user's running browser. That profile is recorded
    as ``proc.temp_profile_dir`` and deleted by :func:`terminate_chrome`.

    Raises :class:`LaunchError` if the process exits early or the debugger
    never becomes reachable; the process is terminated before raising.
    """
    temp_profile_dir = None
    if user_data_dir:
        os.makedirs(user_data_dir, exist_ok=True)
    else:
        user_data_dir = temp_profile_dir = tempfile.mkdtemp(prefix="cdp-kit-profile-")

    args = build_chrome_args(
        chrome_path, starting_url,
        port=port, headless=headless,
        user_data_dir=user_data_dir,
        enable_extensions=enable_extensions,
        extra_args=extra_args,
    )

    log.info("Launching Chrome: %s (port %d)", os.path.basename(chrome_path), port)
    try:
        proc = subprocess.Popen(
            args,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        if temp_profile_dir:
            shutil.rmtree(temp_profile_dir, ignore_errors=True)
        raise LaunchError(f"Failed to launch a browser: {e}") from e
    proc.temp_profile_dir = temp_profile_dir

    version_url = f"http://{host}:{port}/json/version"
    deadline = time.monotonic() + launch_timeout / 1000.0
    while True:
        if proc.poll() is not None:
            terminate_chrome(proc)
            raise LaunchError(f"Chrome exited unexpectedly (code {proc.returncode})")
        try:
            with urllib.request.urlopen(version_url, timeout=1):
                break
        except OSError:
            if time.monotonic() >= deadline:
                terminate_chrome(proc)
                raise LaunchError("Chrome failed to start with remote debugging")
            time.sleep(0.3)

    log.info("Chrome ready on %s:%d (pid %d)", host, port, proc.pid)
    return proc


def kill_stale_cdp(port: int = 9222) -> None:
    """Kill any existing process listening on *port*."""
    try:
        out = subprocess.check_output(
            ["lsof", "-ti", f":{port}"], text=True
        ).strip()
        if out:
            for pid_str in out.split("\n"):
                try:
                    os.kill(int(pid_str), signal.SIGTERM)
                except (ProcessLookupError, ValueError):
                    pass
            log.info("Killed stale Chrome on port %d", port)
            time.sleep(2)
    except subprocess.CalledProcessError:
        pass  # nothing on this port
    except FileNotFoundError:
        log.warning("lsof not found; cannot auto-kill stale CDP processes")


def connect_cdp(playwright, host: str = "localhost", port: int = 9222):
    """Connect Playwright to the remote debugging endpoint at *host*:*port*."""
    endpoint = f"http://{host}:{port}"
    browser = playwright.chromium.connect_over_cdp(endpoint)
    log.info("Connected to Chrome via CDP (%s)", endpoint)
    return browser
