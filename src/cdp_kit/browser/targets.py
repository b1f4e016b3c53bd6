"""Target selection: map a target option onto a Playwright page."""
import logging
from typing import Any, Callable

from ..engine.errors import InvalidArgumentError

log = logging.getLogger(__name__)

TargetOption = Callable[[list[dict]], dict | None] | dict | str


def page_targets(infos: list[dict]) -> list[dict]:
    return [t for t in infos if t.get("type") == "page"]


def default_target(infos: list[dict]) -> dict | None:
    """First target of type ``page``, or None."""
    pages = page_targets(infos)
    return pages[0] if pages else None


def resolve_target_id(option: TargetOption, infos: list[dict]) -> str | None:
    """Resolve *option* to a target id.

    *option* may be a callable choosing from *infos*, a ``TargetInfo`` dict,
    or a target id string.
    """
    if callable(option):
        chosen = option(infos)
        return chosen.get("targetId") if chosen else None
    if isinstance(option, dict):
        return option.get("targetId")
    if isinstance(option, str):
        return option
    raise InvalidArgumentError("type of `target` option is invalid.")


def find_page_for_target(browser: Any, target_id: str):
    """Find the Playwright page backing *target_id*.

    Opens a CDP session per page and compares ``Target.getTargetInfo``.
    Returns ``(page, cdp_session)``; sessions on non-matching pages are
    detached. Returns ``(None, None)`` when nothing matches.
    """
    for context in browser.contexts:
        for page in context.pages:
            cdp = context.new_cdp_session(page)
            try:
                info = cdp.send("Target.getTargetInfo").get("targetInfo", {})
            except Exception as e:
                log.debug("Target.getTargetInfo failed on %s: %s", page.url, e)
                info = {}
            if info.get("targetId") == target_id:
                return page, cdp
            try:
                cdp.detach()
            except Exception as e:
                log.debug("Failed to detach CDP session from %s: %s", page.url, e)
    return None, None
