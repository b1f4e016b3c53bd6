"""cdp-kit: drive a Chrome tab over the DevTools Protocol.

Provides a session manager that launches or attaches to Chrome, a command
façade over the Page/DOM/Network/Input/Emulation domains, deadline-bounded
waits on protocol events, and full-page/element screenshot emulation.
"""
from .config import SessionOptions  # noqa: F401
from .session import Session  # noqa: F401
from .browser.devices import Device, add_custom_device  # noqa: F401
from .engine.errors import (  # noqa: F401
    CdpKitError,
    ErrorSignal,
    EvaluateError,
    EvaluateTimeoutError,
    GotoTimeoutError,
    WaitTimeoutError,
)
