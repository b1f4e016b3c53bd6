"""User-Agent parsing and construction."""
import re

# Oldest Chrome whose protocol surface this client relies on.
MIN_CHROME_VERSION = 61

_CHROME_RE = re.compile(r"Chrom(e|ium)/([0-9]+)\.")


def parse_chrome_major(user_agent: str | None) -> int | None:
    """Extract the Chrome/Chromium major version, or None if absent.

    Works on both ``navigator.userAgent`` and ``Browser.getVersion``'s
    ``product`` string (``HeadlessChrome/120.0.6099.71``).
    """
    if not user_agent:
        return None
    m = _CHROME_RE.search(user_agent)
    return int(m.group(2)) if m else None



def build_user_agent(chrome_version, template: str = "") -> str:
    """Build a desktop Chrome User-Agent string for *chrome_version*.

    *chrome_version* may be a full version (``"120.0.6099.71"``) or a major
    number; a bare major is expanded to ``<major>.0.0.0`` the way Chrome's
    reduced UA reports it. *template* must contain ``{version}``; if empty, a
    standard macOS Chrome UA template is used.
    """
    version = str(chrome_version)
    if "." not in version:
        version = f"{version}.0.0.0"
    if not template:
        template = (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version} Safari/537.36"
        )
    return template.format(version=version)
