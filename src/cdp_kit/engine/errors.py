"""Normalized error signals for browser sessions.

Every error raised by cdp-kit carries an :class:`ErrorSignal` so callers can
branch on the kind of failure without matching exception messages. Protocol
errors raised by the underlying client library propagate unchanged.
"""
from enum import Enum


class ErrorSignal(Enum):
    """Normalized failure kinds."""
    TIMEOUT = "timeout"                     # a wait exceeded its deadline
    GOTO_TIMEOUT = "goto_timeout"           # navigation did not finish in time
    EVALUATE_TIMEOUT = "evaluate_timeout"   # script evaluation did not finish in time
    EVALUATE_FAILED = "evaluate_failed"     # script threw inside the page
    LAUNCH_FAILED = "launch_failed"         # browser process did not come up
    CONNECTION_FAILED = "connection_failed" # no usable target on the endpoint
    INVALID_ARGUMENT = "invalid_argument"   # caller passed something unusable
    NOT_FOUND = "not_found"                 # selector matched nothing


class CdpKitError(Exception):
    """Exception carrying a normalized ErrorSignal."""

    def __init__(self, signal: ErrorSignal, message: str = ""):
        self.signal = signal
        super().__init__(message or signal.value)


class _SignalledError(CdpKitError):
    default_signal = ErrorSignal.TIMEOUT

    def __init__(self, message: str = ""):
        super().__init__(self.default_signal, message)


class WaitTimeoutError(_SignalledError):
    """A wait exceeded its deadline."""
    default_signal = ErrorSignal.TIMEOUT


class GotoTimeoutError(WaitTimeoutError):
    default_signal = ErrorSignal.GOTO_TIMEOUT


class EvaluateTimeoutError(WaitTimeoutError):
    default_signal = ErrorSignal.EVALUATE_TIMEOUT


class EvaluateError(_SignalledError):
    """A script threw inside the page."""
    default_signal = ErrorSignal.EVALUATE_FAILED


class LaunchError(_SignalledError):
    default_signal = ErrorSignal.LAUNCH_FAILED


class ConnectionFailedError(_SignalledError):
    default_signal = ErrorSignal.CONNECTION_FAILED


class InvalidArgumentError(_SignalledError):
    default_signal = ErrorSignal.INVALID_ARGUMENT


class SelectorNotFoundError(_SignalledError):
    default_signal = ErrorSignal.NOT_FOUND

    def __init__(self, selector: str, message: str = ""):
        self.selector = selector
        super().__init__(message or f"selector is not found. selector={selector}")
