"""Temporary full-page viewport emulation for document and element captures.

Limitation: capture height is capped at 16384 device pixels. Chrome's
compositor (Skia) cannot produce taller surfaces and returns a blank or
truncated image instead.
"""
import logging

from .errors import InvalidArgumentError

log = logging.getLogger(__name__)

MAX_CAPTURE_HEIGHT = 16384
MODELS = ("scroll", "box")
# Time given to the page to lay out after the viewport changes.
SETTLE_MS = 200

_DOCUMENT_INFO_FN = """
() => {
  const doc = document.documentElement
  const body = document.body || doc
  const box = doc.getBoundingClientRect()
  return {
    devicePixelRatio: window.devicePixelRatio,
    viewportWidth: window.innerWidth,
    viewportHeight: window.innerHeight,
    scrollX: window.scrollX,
    scrollY: window.scrollY,
    scrollWidth: Math.max(doc.scrollWidth, body.scrollWidth),
    scrollHeight: Math.max(doc.scrollHeight, body.scrollHeight),
    boxWidth: box.width,
    boxHeight: box.height,
  }
}
"""


class FullscreenEmulationManager:
    """Grow the viewport to the whole document, then put it back.

    ``model="scroll"`` sizes to the document's scroll size; ``model="box"``
    to the document element's bounding box. With ``for_selector`` the
    viewport width is preserved so the layout does not reflow around the
    element being captured.
    """

    def __init__(self, session, model: str = "scroll", for_selector: bool = False,
                 use_device_resolution: bool = False):
        if model not in MODELS:
            raise InvalidArgumentError(f"model is invalid: {model!r} (expected one of {MODELS})")
        self._session = session
        self.model = model
        self.for_selector = for_selector
        self.use_device_resolution = use_device_resolution
        self._saved: dict | None = None

    def capture_size(self, info: dict) -> tuple[int, int, float]:
        """Return ``(width, height, device_scale_factor)`` for *info*."""
        if self.model == "box":
            width, height = info["boxWidth"], info["boxHeight"]
        else:
            width, height = info["scrollWidth"], info["scrollHeight"]
        viewport_width = info["viewportWidth"]
        width = viewport_width if self.for_selector else max(width, viewport_width)
        height = max(height, info["viewportHeight"])

        scale = (info.get("devicePixelRatio") or 1) if self.use_device_resolution else 1
        max_height = MAX_CAPTURE_HEIGHT / scale
        if height > max_height:
            log.warning("Capture height %dpx exceeds limit; clamping to %dpx", height, max_height)
            height = max_height
        return int(width), int(height), scale

    def emulate(self) -> None:
        info = self._session.evaluate(_DOCUMENT_INFO_FN)
        self._saved = info
        width, height, scale = self.capture_size(info)
        log.debug("Fullscreen emulation %dx%d @%sx (model=%s)", width, height, scale, self.model)
        self._session.client.send("Emulation.setDeviceMetricsOverride", {
            "width": width,
            "height": height,
            "deviceScaleFactor": scale,
            "mobile": False,
        })
        self._session.scroll_to(0, 0)
        self._session.sleep(SETTLE_MS)

    def reset(self) -> None:
        """Drop the override and restore the scroll position. No-op before emulate()."""
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        self._session.client.send("Emulation.clearDeviceMetricsOverride")
        self._session.scroll_to(saved.get("scrollX", 0), saved.get("scrollY", 0))
