"""Terminal and filesystem service facades.

These are what a caller (the CLI, or an agent loop) talks to. Each facade
validates first and only then touches the executor or the provider:

    TerminalService.execute_command -> CommandValidator -> CommandExecutor
    FilesystemService.read_file     -> PathSafetyValidator -> provider

Facades hold only connection state. Every rejection is raised as a
ValidationError subclass before any I/O happens, and recorded in the audit
log when one is attached.
"""

import os
import platform
import threading
from datetime import datetime, timezone

from core.command_validator import CommandValidator
from core.errors import (
    CommandBlockedError,
    GatewayError,
    ProviderConnectionError,
    ProviderError,
    SpawnError,
    ValidationError,
)
from core.executor import CommandExecutor
from core.gateway import FileAccessGateway
from core.path_validator import PathSafetyValidator
from core.provider import ToolProviderClient, content_text, default_roots
from core.rules import select_command_rules, select_path_rules


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TerminalService:
    """Validated command execution."""

    def __init__(self, validator: CommandValidator, executor: CommandExecutor,
                 audit=None):
        self.validator = validator
        self.executor = executor
        self.audit = audit
        self.connected = False
        self.stats = {"commands": 0, "blocked": 0}
        self._lock = threading.Lock()

    def connect(self) -> bool:
        """Mark the service ready. There is no child process to start."""
        with self._lock:
            self.connected = True
        return True

    def disconnect(self) -> None:
        with self._lock:
            self.connected = False

    def execute_command(self, command: str) -> dict:
        """Validate and run a command.

        Returns:
            The executor's result dict. Non-zero exits and timeouts are
            reported there, not raised.

        Raises:
            CommandBlockedError: the validator refused the command.
            SpawnError: the command passed validation but could not start.
        """
        if not self.connected:
            self.connect()

        verdict = self.validator.validate(command)
        if not verdict["valid"]:
            self.stats["blocked"] += 1
            if self.audit:
                self.audit.command_blocked(command, verdict["reason"])
            raise CommandBlockedError(verdict["reason"])

        try:
            result = self.executor.execute(command)
        except SpawnError as e:
            if self.audit:
                self.audit.error("terminal", str(e))
            raise

        self.stats["commands"] += 1
        if self.audit:
            self.audit.command_run(command, result["exit_code"],
                                   result["duration_ms"], result["timed_out"])
        return result

    def safe_commands_info(self) -> dict:
        """Describe what this service will run and the limits it applies."""
        rules = self.validator.rules
        prefixes = [p.strip() for p in rules.whitelist_prefixes]
        lines = [
            f"Terminal access ({rules.name} rules)",
            "",
            "Allowed commands (prefixes):",
        ]
        lines.extend(f"  - {p}" for p in prefixes)
        lines += [
            "",
            "Limits:",
            f"  - Timeout: {self.executor.timeout_seconds}s",
            f"  - Output: {self.executor.max_output_size:,} chars per stream",
            "  - No shell: pipes, redirection, chaining and expansion are refused",
            "  - Destructive and privilege-escalating commands are blocked",
        ]
        return {
            "platform": rules.name,
            "whitelist": prefixes,
            "timeout_seconds": self.executor.timeout_seconds,
            "max_output_size": self.executor.max_output_size,
            "message": "\n".join(lines),
        }


class FilesystemService:
    """Validated file access through the filesystem tool-provider."""

    def __init__(self, gateway: FileAccessGateway, audit=None):
        self.gateway = gateway
        self.audit = audit
        self.stats = {"file_ops": 0, "blocked": 0}

    @property
    def connected(self) -> bool:
        return self.gateway.connected

    def connect(self) -> bool:
        """Start the provider if needed. Returns False if it could not start."""
        try:
            self._ensure_connected()
        except GatewayError:
            return False
        return True

    def disconnect(self) -> None:
        self.gateway.disconnect()

    def read_file(self, path: str) -> dict:
        """Read a file. Returns {path, content, tool_used, timestamp}."""
        tool, content = self._run("read", path, self.gateway.read, path)
        return {
            "path": path,
            "content": content_text(content),
            "tool_used": tool,
            "timestamp": _now(),
        }

    def write_file(self, path: str, content: str) -> dict:
        """Write a file. Returns {path, result, tool_used, timestamp}."""
        tool, result = self._run("write", path, self.gateway.write, path, content)
        return {
            "path": path,
            "result": content_text(result),
            "tool_used": tool,
            "timestamp": _now(),
        }

    def list_directory(self, path: str) -> dict:
        """List a directory. Returns {path, contents, tool_used, timestamp}."""
        tool, contents = self._run("list", path, self.gateway.list, path)
        return {
            "path": path,
            "contents": content_text(contents),
            "tool_used": tool,
            "timestamp": _now(),
        }

    def safe_paths_info(self) -> dict:
        """Describe where file access is allowed and what stays off limits."""
        validator = self.gateway.validator
        rules = validator.rules
        roots = list(self.gateway.provider_roots)
        lines = [
            f"Filesystem access ({rules.name} rules)",
            "",
            "Accessible areas:",
        ]
        lines.extend(f"  - {root}" for root in rules.allowed_roots)
        lines.extend(f"  - {root} (project)" for root in validator.project_roots)
        lines += ["", "Restricted areas:"]
        lines.extend(f"  - {root}" for root in rules.restricted_roots)
        lines += [
            "",
            "Also refused: path traversal, symlinks to restricted targets,",
            "executables outside the project, sensitive dot-directories.",
        ]
        return {
            "platform": rules.name,
            "allowed_roots": list(rules.allowed_roots),
            "restricted_roots": list(rules.restricted_roots),
            "project_roots": list(validator.project_roots),
            "provider_roots": roots,
            "message": "\n".join(lines),
        }

    def _ensure_connected(self) -> None:
        if self.gateway.connected:
            return
        roots = list(self.gateway.provider_roots)
        try:
            self.gateway.connect()
        except (ProviderConnectionError, ProviderError) as e:
            if self.audit:
                self.audit.provider_connect(False, roots, str(e))
            if isinstance(e, ProviderConnectionError):
                raise
            raise ProviderConnectionError(
                f"Failed to connect to filesystem service: {e}"
            ) from e
        if self.audit:
            self.audit.provider_connect(True, roots)

    def _run(self, operation: str, path, call, *args):
        # Validate before connecting, so a denied path never starts the provider
        try:
            self.gateway.check(path)
        except ValidationError as e:
            self.stats["blocked"] += 1
            if self.audit:
                self.audit.path_blocked(operation, path, e.reason)
            raise

        self._ensure_connected()
        try:
            tool, content = call(*args)
        except ProviderError as e:
            if self.audit:
                self.audit.file_op(operation, path, "", False, str(e))
            raise

        self.stats["file_ops"] += 1
        if self.audit:
            self.audit.file_op(operation, path, tool, True)
        return tool, content


def build_services(config: dict, audit=None) -> tuple[TerminalService, FilesystemService]:
    """Build a fresh terminal/filesystem service pair from a loaded config.

    Returns:
        (TerminalService, FilesystemService). Nothing is started yet.
    """
    system = config.get("platform") or platform.system()
    project_root = os.path.abspath(config.get("project_root") or os.getcwd())

    command_rules = select_command_rules(system)
    path_rules = select_path_rules(system)

    terminal = TerminalService(
        CommandValidator(command_rules),
        CommandExecutor(
            command_rules,
            timeout_seconds=config.get("command_timeout", 5),
            max_output_size=config.get("max_output_size", 1024 * 1024),
            cwd=project_root,
        ),
        audit=audit,
    )

    roots = config.get("provider_roots")
    if not roots:
        roots = default_roots(path_rules.provider_roots, project_root)
    roots = list(roots)

    def provider_factory():
        return ToolProviderClient(
            roots,
            command=config.get("provider_command") or "npx",
            args=config.get("provider_args"),
            timeout_seconds=config.get("provider_timeout", 30),
        )

    gateway = FileAccessGateway(
        PathSafetyValidator(path_rules, project_root=project_root),
        provider_factory,
        provider_roots=roots,
    )
    filesystem = FilesystemService(gateway, audit=audit)
    return terminal, filesystem
