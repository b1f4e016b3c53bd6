"""Screenshot and PDF capture.

Functions take a started :class:`~cdp_kit.session.Session`; the session
exposes each of them as a method.
"""
import base64
import io
import logging
from typing import Any, Callable

from PIL import Image

from .engine.emulation import FullscreenEmulationManager
from .engine.errors import InvalidArgumentError, SelectorNotFoundError

log = logging.getLogger(__name__)

FORMATS = ("png", "jpeg")

# (error, image, selector_index, selectors, rect_index)
SelectorCallback = Callable[[Exception | None, bytes | None, int, list[str], int | None], Any]


def _capture_params(fmt: str, quality: int | None, from_surface: bool,
                    clip: dict | None = None) -> dict:
    if fmt not in FORMATS:
        raise InvalidArgumentError("format is invalid.")
    params: dict = {"format": fmt, "fromSurface": from_surface}
    if quality is not None:
        params["quality"] = quality
    if clip is not None:
        params["clip"] = clip
    return params


def _capture(session, params: dict) -> bytes:
    result = session.client.send("Page.captureScreenshot", params)
    return base64.b64decode(result["data"])


def _rect_to_clip(rect: dict) -> dict:
    return {
        "x": rect["left"],
        "y": rect["top"],
        "width": rect["width"],
        "height": rect["height"],
        "scale": 1,
    }


def _has_area(rect: dict | None) -> bool:
    return bool(rect) and rect.get("width", 0) != 0 and rect.get("height", 0) != 0


def scale_image(data: bytes, factor: float, fmt: str = "png", quality: int | None = None) -> bytes:
    """Resample an encoded image by *factor* and re-encode it in *fmt*."""
    with Image.open(io.BytesIO(data)) as img:
        size = (max(1, round(img.width * factor)), max(1, round(img.height * factor)))
        resized = img.resize(size, Image.Resampling.BICUBIC)
    out = io.BytesIO()
    if fmt == "jpeg":
        if resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")
        resized.save(out, format="JPEG", quality=quality or 100)
    else:
        resized.save(out, format="PNG")
    return out.getvalue()


def screenshot(session, format: str = "png", quality: int | None = None,
               from_surface: bool = True, use_device_resolution: bool = False) -> bytes:
    """Capture the viewport.

    Unless *use_device_resolution* is set, HiDPI captures are scaled back to
    CSS pixels so one image pixel equals one CSS pixel.
    """
    session._check_start()
    image = _capture(session, _capture_params(format, quality, from_surface))
    if not use_device_resolution:
        ratio = session.screen_info().get("devicePixelRatio") or 1
        if ratio != 1:
            image = scale_image(image, 1.0 / ratio, format, quality)
    session._log_capture("viewport", format, image)
    return image


def screenshot_document(session, model: str = "scroll", format: str = "png",
                        quality: int | None = None, from_surface: bool = True,
                        use_device_resolution: bool = False) -> bytes:
    """Capture the whole document by temporarily growing the viewport."""
    session._check_start()
    emulation = FullscreenEmulationManager(
        session, model, for_selector=False, use_device_resolution=use_device_resolution,
    )
    try:
        emulation.emulate()
        # The emulated metrics already carry the wanted resolution.
        image = _capture(session, _capture_params(format, quality, from_surface))
    finally:
        emulation.reset()
        session._restore_emulation_setting()
    session._log_capture("document", format, image)
    return image


def screenshot_selector(session, selector: str, format: str = "png",
                        quality: int | None = None, from_surface: bool = True,
                        use_device_resolution: bool = False) -> bytes | None:
    """Capture the first element matching *selector*.

    Returns None when the element is missing or has no area.
    """
    session._check_start()
    params = _capture_params(format, quality, from_surface)
    emulation = FullscreenEmulationManager(
        session, "scroll", for_selector=True, use_device_resolution=use_device_resolution,
    )
    try:
        emulation.emulate()
        rect = session.get_bounding_client_rect(selector)
        if not _has_area(rect):
            return None
        image = _capture(session, dict(params, clip=_rect_to_clip(rect)))
    finally:
        emulation.reset()
        session._restore_emulation_setting()
    session._log_capture("selector", format, image)
    return image


def screenshot_multiple_selectors(session, selectors: list[str], callback: SelectorCallback, *,
                                  format: str = "png", quality: int | None = None,
                                  from_surface: bool = True, use_device_resolution: bool = False,
                                  use_query_selector_all: bool = False) -> None:
    """Capture each selector under a single emulation, streaming results to *callback*.

    Per-selector failures (including :class:`SelectorNotFoundError`) go to
    the callback as its first argument; the loop carries on with the next
    selector.
    """
    session._check_start()
    params = _capture_params(format, quality, from_surface)
    emulation = FullscreenEmulationManager(
        session, "scroll", for_selector=True, use_device_resolution=use_device_resolution,
    )
    emulation.emulate()
    try:
        for index, selector in enumerate(selectors):
            try:
                if use_query_selector_all:
                    rects = [r for r in session.rect_all(selector) if _has_area(r)]
                else:
                    rect = session.get_bounding_client_rect(selector)
                    rects = [rect] if _has_area(rect) else []
                if not rects:
                    callback(SelectorNotFoundError(selector), None, index, selectors, None)
                    continue
                for rect_index, rect in enumerate(rects):
                    image = _capture(session, dict(params, clip=_rect_to_clip(rect)))
                    session._log_capture("selector", format, image)
                    callback(None, image, index, selectors, rect_index)
            except Exception as e:
                log.debug("Capture failed for selector %r: %s", selector, e)
                callback(e, None, index, selectors, None)
    finally:
        emulation.reset()
        session._restore_emulation_setting()


def pdf(session, **options: Any) -> bytes:
    """Print the page to PDF; *options* are ``Page.printToPDF`` params."""
    session._check_start()
    result = session.client.send("Page.printToPDF", options)
    data = base64.b64decode(result["data"])
    session._log_capture("pdf", "pdf", data)
    return data
