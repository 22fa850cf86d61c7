"""Structured audit logging for hostgate sessions.

Logs every blocked command, executed command, denied path, file operation,
provider connection and error to a JSONL (JSON Lines) file. Each line is a
self-contained JSON object.

Log files are written to the configured directory as
.hostgate-audit-YYYYMMDD-HHMMSS.jsonl. Validators never log; the services do.
"""

import json
import os
import threading
import time
from datetime import datetime, timezone


class AuditLog:
    """Append-only structured logger for gateway events."""

    def __init__(self, log_dir: str = "."):
        """Initialize audit logger.

        Args:
            log_dir: Directory to write log files. Defaults to cwd.
        """
        self.log_dir = log_dir
        ts = datetime.now().strftime("%Y%m%d-%H%M%S")
        self.log_path = os.path.join(log_dir, f".hostgate-audit-{ts}.jsonl")
        self._session_id = ts
        self._event_count = 0
        self._start_time = time.time()
        self._file = None
        self._lock = threading.Lock()

    def _ensure_open(self):
        """Lazily open the log file on first write."""
        if self._file is None:
            os.makedirs(self.log_dir, exist_ok=True)
            self._file = open(self.log_path, "a", encoding="utf-8")

    def _write(self, event_type: str, data: dict) -> None:
        """Write a single event to the log."""
        with self._lock:
            self._ensure_open()
            self._event_count += 1
            entry = {
                "seq": self._event_count,
                "ts": datetime.now(timezone.utc).isoformat(),
                "elapsed_s": round(time.time() - self._start_time, 2),
                "event": event_type,
                **data,
            }
            self._file.write(json.dumps(entry, separators=(",", ":")) + "\n")
            self._file.flush()

    def session_start(self, platform: str, project_root: str,
                      provider_roots: list[str] = None) -> None:
        """Log session start with the effective rule selection."""
        self._write("session_start", {
            "session_id": self._session_id,
            "platform": platform,
            "project_root": project_root,
            "provider_roots": provider_roots or [],
        })

    def session_end(self, commands: int, file_ops: int, blocked: int) -> None:
        """Log session end with summary stats."""
        self._write("session_end", {
            "commands": commands,
            "file_ops": file_ops,
            "blocked": blocked,
            "duration_s": round(time.time() - self._start_time, 1),
        })
        self.close()

    def command_blocked(self, command: str, reason: str) -> None:
        """Log a command refused by the validator."""
        self._write("command_blocked", {
            "command": command[:500] if isinstance(command, str) else repr(command)[:500],
            "reason": reason[:300],
        })

    def command_run(self, command: str, exit_code, duration_ms: int,
                    timed_out: bool = False) -> None:
        """Log a command that was executed."""
        self._write("command_run", {
            "command": command[:500],
            "exit_code": exit_code,
            "duration_ms": duration_ms,
            "timed_out": timed_out,
        })

    def path_blocked(self, operation: str, path: str, reason: str) -> None:
        """Log a path refused by the validator."""
        self._write("path_blocked", {
            "op": operation,
            "path": path[:500] if isinstance(path, str) else repr(path)[:500],
            "reason": reason[:300],
        })

    def file_op(self, operation: str, path: str, tool: str, ok: bool,
                error: str = "") -> None:
        """Log a file operation delegated to the provider."""
        self._write("file_op", {
            "op": operation,
            "path": path[:500],
            "tool": tool,
            "ok": ok,
            "error": error[:300] if error else "",
        })

    def provider_connect(self, ok: bool, roots: list[str] = None,
                         error: str = "") -> None:
        """Log a tool-provider connection attempt."""
        self._write("provider_connect", {
            "ok": ok,
            "roots": roots or [],
            "error": error[:300] if error else "",
        })

    def error(self, source: str, message: str) -> None:
        """Log an error."""
        self._write("error", {
            "source": source,
            "message": message[:500],
        })

    def close(self) -> None:
        """Flush and close the log file."""
        with self._lock:
            if self._file is not None:
                self._file.flush()
                self._file.close()
                self._file = None

    @property
    def event_count(self) -> int:
        return self._event_count

    @property
    def session_id(self) -> str:
        return self._session_id
