"""Structured JSONL event logging for browser sessions."""
import json
import logging
import os
import time

log = logging.getLogger(__name__)


class SessionEventLogger:
    """Writes one JSON line per session event to a per-run JSONL file.

    All logging is best-effort; methods never raise exceptions.
    Supports context-manager protocol for automatic close.

    An optional ``label`` (e.g. the job name driving the browser) is included
    in every event when provided.
    """

    def __init__(self, run_id: str, log_dir: str = "data/logs/sessions",
                 label: str | None = None):
        self._run_id = run_id
        self._label = label
        self._f = None
        try:
            os.makedirs(log_dir, exist_ok=True)
            prefix = (label or "session").replace("/", "_").replace("\\", "_")
            path = os.path.join(log_dir, f"{prefix}_{run_id}.jsonl")
            self._f = open(path, "a", encoding="utf-8")
        except Exception as e:
            log.warning(f"SessionEventLogger: failed to open log file: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _write(self, event: dict):
        if self._f is None:
            return
        try:
            event["ts"] = time.time()
            event["run_id"] = self._run_id
            if self._label is not None:
                event["label"] = self._label
            self._f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
            self._f.flush()
        except Exception as e:
            log.warning(f"SessionEventLogger: write failed: {e}")

    def log_session_start(self, instance_id: int, host: str, port: int,
                          launched: bool, chrome_version: int | None):
        self._write({
            "event": "session_start",
            "instance_id": instance_id,
            "host": host,
            "port": port,
            "launched": launched,
            "chrome_version": chrome_version,
        })

    def log_goto(self, instance_id: int, url: str, status: int | None, duration: float):
        self._write({
            "event": "goto",
            "instance_id": instance_id,
            "url": url,
            "status": status,
            "duration": duration,
        })

    def log_timeout(self, instance_id: int, operation: str, timeout: float):
        self._write({
            "event": "timeout",
            "instance_id": instance_id,
            "operation": operation,
            "timeout": timeout,
        })

    def log_screenshot(self, instance_id: int, kind: str, fmt: str, size: int):
        """Log one capture.

        Valid ``kind`` values: ``viewport``, ``document``, ``selector``, ``pdf``.
        """
        self._write({
            "event": "screenshot",
            "instance_id": instance_id,
            "kind": kind,
            "format": fmt,
            "bytes": size,
        })

    def log_session_close(self, instance_id: int, duration: float):
        self._write({
            "event": "session_close",
            "instance_id": instance_id,
            "duration": duration,
        })

    def close(self):
        if self._f is not None:
            try:
                self._f.flush()
                self._f.close()
            except Exception:
                pass
            self._f = None
