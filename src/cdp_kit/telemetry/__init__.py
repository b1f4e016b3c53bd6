"""telemetry: structured per-session event logs."""
from .logger import SessionEventLogger  # noqa: F401
