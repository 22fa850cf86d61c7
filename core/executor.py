"""Run validated commands as subprocesses, never through a shell.

The executor trusts its caller: it is only handed commands that already got
a valid verdict from CommandValidator. It does not re-validate. What it adds:
- argv tokenization with shlex, spawned with shell=False. Validated commands
  carry no quotes or escapes, so shlex only splits on whitespace
- a minimal, explicit child environment (no inherited secrets)
- a hard timeout that kills the process and is reported, not raised
- full buffering of stdout/stderr, truncated to max_output_size
"""

import os
import shlex
import subprocess
import time

from core.errors import SpawnError
from core.rules import CommandRules, select_command_rules


# Default timeout for a single command (seconds)
DEFAULT_TIMEOUT = 5

# Maximum output size kept per stream (1 MB)
MAX_OUTPUT_SIZE = 1024 * 1024


class CommandExecutor:
    """Spawns whitelisted commands with a constrained environment and timeout."""

    def __init__(
        self,
        rules: CommandRules = None,
        timeout_seconds: float = DEFAULT_TIMEOUT,
        max_output_size: int = MAX_OUTPUT_SIZE,
        cwd: str = None,
    ):
        self.rules = rules or select_command_rules()
        self.timeout_seconds = timeout_seconds
        self.max_output_size = max_output_size
        self.cwd = cwd

    def split(self, command: str) -> list[str]:
        """Split a command into argv without any shell interpretation.

        Raises:
            SpawnError: unbalanced quotes or an empty command.
        """
        try:
            argv = shlex.split(command, posix=self.rules.posix)
        except ValueError as e:
            raise SpawnError(f"Command could not be parsed: {e}") from e
        if not argv:
            raise SpawnError("Command could not be parsed: empty command")
        return argv

    def build_env(self) -> dict:
        """Build the child environment from the rule set's key list only."""
        env = {}
        for key in self.rules.child_env_keys:
            value = os.environ.get(key)
            if value:
                env[key] = value
        env.setdefault("TERM", "dumb")
        return env

    def execute(self, command: str) -> dict:
        """Run a command and wait for it, up to the timeout.

        Returns:
            dict with command, exit_code, output, error, success, timed_out,
            duration_ms. exit_code is None when the process was killed.

        Raises:
            SpawnError: the process could not be started.
        """
        argv = self.split(command)
        start = time.time()

        try:
            proc = subprocess.Popen(
                argv,
                shell=False,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self.build_env(),
                cwd=self.cwd,
            )
        except FileNotFoundError as e:
            raise SpawnError(f"Command execution failed: {argv[0]}: command not found") from e
        except PermissionError as e:
            raise SpawnError(f"Command execution failed: {argv[0]}: permission denied") from e
        except OSError as e:
            raise SpawnError(f"Command execution failed: {e}") from e

        timed_out = False
        try:
            stdout, stderr = proc.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            timed_out = True
            proc.kill()
            stdout, stderr = proc.communicate()
        duration_ms = int((time.time() - start) * 1000)

        exit_code = None if timed_out else proc.returncode
        error = self.truncate_output((stderr or "").strip())
        if timed_out:
            note = f"Command timed out after {self.timeout_seconds}s."
            error = f"{error}\n{note}" if error else note

        return {
            "command": command,
            "exit_code": exit_code,
            "output": self.truncate_output((stdout or "").strip()),
            "error": error,
            "success": exit_code == 0,
            "timed_out": timed_out,
            "duration_ms": duration_ms,
        }

    def truncate_output(self, output: str) -> str:
        """Truncate output to max_output_size."""
        if len(output) > self.max_output_size:
            truncated = output[:self.max_output_size]
            return truncated + f"\n[...truncated at {self.max_output_size:,} chars]"
        return output

