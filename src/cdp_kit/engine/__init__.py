"""engine: errors, deadline-bounded waiting, script builders and capture emulation."""
from .errors import ErrorSignal, CdpKitError, WaitTimeoutError, GotoTimeoutError  # noqa: F401
from .waiter import Deadline, EventWaiter, wait_finish, wait_until  # noqa: F401
from .emulation import FullscreenEmulationManager  # noqa: F401
