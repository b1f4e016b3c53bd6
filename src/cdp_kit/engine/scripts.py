"""JavaScript source builders for Runtime.evaluate.

Values are embedded with ``json.dumps`` so arbitrary strings survive the
round-trip into page context without hand-written escaping.
"""
import json
import re
from urllib.parse import urlparse, urlunparse

# `function ...`, `async function ...`, `(a, b) => ...`, `x => ...`
_FUNCTION_RE = re.compile(
    r"^\s*(async\s+)?(function\b|\([^()]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)"
)
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_OPAQUE_SCHEMES = ("about:", "data:", "javascript:")

# Rejection value of the in-page deadline added by build_deadline_expression().
EVALUATE_TIMEOUT_MARKER = "cdp-kit:evaluate-timeout"


def is_function_source(source: str) -> bool:
    """True if *source* is a JS function expression rather than a statement body."""
    return bool(_FUNCTION_RE.match(source))


def build_call_expression(source: str, args: tuple | list = ()) -> str:
    """Wrap *source* so it can be evaluated with JSON-serializable *args*.

    A function expression is called directly. Anything else is treated as a
    function *body*, so ``"return document.title"`` works as expected.
    """
    args_js = ", ".join(json.dumps(a) for a in args)
    if is_function_source(source):
        return f"({source})({args_js})"
    return f"(function () {{ {source} }})({args_js})"


def build_deadline_expression(call: str, timeout: float) -> str:
    """Race *call* against a page-side timer rejecting with EVALUATE_TIMEOUT_MARKER.

    ``Runtime.evaluate``'s own ``timeout`` only bounds synchronous execution;
    with ``awaitPromise`` a promise that never settles would block forever.
    """
    marker = json.dumps(EVALUATE_TIMEOUT_MARKER)
    return (
        "(() => {\n"
        "  let timer\n"
        "  const deadline = new Promise((_, reject) => {\n"
        f"    timer = setTimeout(() => reject({marker}), {int(timeout)})\n"
        "  })\n"
        f"  const work = Promise.resolve().then(() => {call})\n"
        "  return Promise.race([work, deadline]).finally(() => clearTimeout(timer))\n"
        "})()"
    )


def module_to_function_sources(module: dict[str, str]) -> list[str]:
    """Turn ``{"name": "function-or-arrow source"}`` into named global functions."""
    return [
        f"function {name} () {{ return ({source})(...arguments) }}"
        for name, source in module.items()
    ]


def make_send_to_host(prefix: str) -> str:
    """Page-side function that tags its arguments on the console for the host.

    The host receives the call's arguments as a JSON array.
    """
    prefix_js = json.dumps(f"{prefix}:")
    return f"function () {{ console.info({prefix_js} + JSON.stringify(Array.from(arguments))) }}"


def build_inject_js(script: str) -> str:
    return (
        "{\n"
        "  let script = document.createElement('script')\n"
        "  script.type = 'text/javascript'\n"
        f"  script.innerHTML = {json.dumps(script)}\n"
        "  document.body.appendChild(script)\n"
        "}"
    )


def build_inject_css(style: str) -> str:
    return (
        "{\n"
        "  let style = document.createElement('style')\n"
        "  style.type = 'text/css'\n"
        f"  style.innerText = {json.dumps(style)}\n"
        "  document.head.appendChild(style)\n"
        "}"
    )


def complete_url(url: str) -> str:
    """Prefix ``http://`` unless *url* already carries a scheme."""
    if url.startswith(_OPAQUE_SCHEMES) or _SCHEME_RE.match(url):
        return url
    return "http://" + url


def normalize_url(url: str, keep_fragment: bool = False) -> str:
    """Canonical form used to match Network events.

    Scheme and host are lower-cased and bare hosts get a ``/`` path. The
    fragment is dropped unless *keep_fragment*, since Chrome never reports
    it on responses.
    """
    parsed = urlparse(complete_url(url))
    if not parsed.netloc:
        return complete_url(url) if keep_fragment else parsed._replace(fragment="").geturl()
    parsed = parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower())
    if not parsed.path:
        parsed = parsed._replace(path="/")
    if not keep_fragment:
        parsed = parsed._replace(fragment="")
    return urlunparse(parsed)
