"""Cookie parameter normalization and storage-state import."""
import json
import logging
import os

log = logging.getLogger(__name__)


def as_cookie_list(params) -> list[dict]:
    return list(params) if isinstance(params, (list, tuple)) else [params]


def needs_url(params) -> bool:
    """True if any cookie in *params* would be scoped to the current page."""
    return any(not c.get("url") and not c.get("domain") for c in as_cookie_list(params))


def normalize_cookies(params, current_url: str) -> list[dict]:
    """Return a list of ``Network.setCookie`` params.

    *params* is one cookie dict or a list of them. Cookies carrying neither
    ``url`` nor ``domain`` are scoped to *current_url*. The caller's dicts
    are never mutated.
    """
    result = []
    for item in as_cookie_list(params):
        cookie = dict(item)
        if not cookie.get("url") and not cookie.get("domain"):
            cookie["url"] = current_url
        result.append(cookie)
    return result


def load_cookie_file(state_path: str) -> list[dict]:
    """Read cookies from a storage-state JSON file (``{"cookies": [...]}``) or a bare list.

    Never raises. Returns ``[]`` for a missing or unreadable file.
    """
    if not os.path.isfile(state_path):
        return []
    try:
        with open(state_path, "r", encoding="utf-8") as f:
            state = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        log.warning("Failed to load cookie file %s: %s", state_path, e)
        return []
    cookies = state.get("cookies", []) if isinstance(state, dict) else state
    if not isinstance(cookies, list):
        return []
    result = []
    for c in cookies:
        if not isinstance(c, dict):
            continue
        c = dict(c)
        # Storage state marks session cookies with expires=-1.
        if isinstance(c.get("expires"), (int, float)) and c["expires"] < 0:
            del c["expires"]
        result.append(c)
    return result
