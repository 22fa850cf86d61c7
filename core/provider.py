"""Client for the external filesystem tool-provider process.

The provider is a separate, already-sandboxed process (by default the
Model Context Protocol filesystem server) that is started with a fixed list
of accessible root directories and performs the actual file I/O. This module
only speaks its wire protocol: newline-delimited JSON-RPC 2.0 over stdio.

    initialize -> notifications/initialized -> tools/list -> tools/call ...

A daemon thread reads stdout into a queue so every request can wait with a
timeout. Another drains stderr into a short tail used in error messages.
Requests are serialized with a lock.
"""

import collections
import json
import os
import queue
import shutil
import subprocess
import threading
import time

from core.errors import ProviderConnectionError, ProviderError


PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "hostgate-filesystem-client", "version": "0.3.0"}

DEFAULT_PROVIDER_COMMAND = "npx"
DEFAULT_PROVIDER_ARGS = ("-y", "@modelcontextprotocol/server-filesystem")

# Seconds to wait for any single response
DEFAULT_TIMEOUT = 30

# Lines of provider stderr kept for diagnostics
_STDERR_TAIL = 20


class ToolProviderClient:
    """One provider process with a fixed root set, for its whole lifetime."""

    def __init__(
        self,
        roots: list[str],
        command: str = DEFAULT_PROVIDER_COMMAND,
        args: list[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT,
        env: dict = None,
    ):
        # Roots are fixed here and only ever passed at process start
        self.roots = tuple(roots)
        self.command = command
        self.args = tuple(DEFAULT_PROVIDER_ARGS if args is None else args)
        self.timeout_seconds = timeout_seconds
        self.extra_env = dict(env or {})
        self.server_info: dict = {}
        self._proc = None
        self._responses: queue.Queue = queue.Queue()
        self._stderr_tail = collections.deque(maxlen=_STDERR_TAIL)
        self._lock = threading.Lock()
        self._next_id = 0

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def start(self) -> None:
        """Spawn the provider and complete the initialize handshake.

        Raises:
            ProviderConnectionError: spawn failed or the handshake did not finish.
        """
        if self.running:
            return

        executable = shutil.which(self.command) or self.command
        argv = [executable, *self.args, *self.roots]
        env = dict(os.environ)
        env.update({"MCP_LOG_LEVEL": "error", "NODE_ENV": "production"})
        env.update(self.extra_env)

        try:
            self._proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                env=env,
            )
        except OSError as e:
            self._proc = None
            raise ProviderConnectionError(
                f"Failed to start filesystem provider ({self.command}): {e}"
            ) from e

        threading.Thread(target=self._read_stdout, args=(self._proc,), daemon=True).start()
        threading.Thread(target=self._read_stderr, args=(self._proc,), daemon=True).start()

        try:
            result = self.request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            })
            self.notify("notifications/initialized")
        except ProviderError as e:
            self.close()
            raise ProviderConnectionError(
                f"Filesystem provider handshake failed: {e}"
            ) from e
        self.server_info = result.get("serverInfo", {})

    def close(self) -> None:
        """Terminate the provider process. Safe to call more than once."""
        proc, self._proc = self._proc, None
        if proc is None:
            return
        try:
            if proc.stdin:
                proc.stdin.close()
        except OSError:
            pass
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()

    # --------------------------------------------------------
    # Protocol
    # --------------------------------------------------------

    def list_tools(self) -> list[dict]:
        """Ask the provider which tools it exposes (name, inputSchema, ...)."""
        tools = []
        cursor = None
        while True:
            params = {"cursor": cursor} if cursor else {}
            result = self.request("tools/list", params)
            tools.extend(result.get("tools", []))
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    def call_tool(self, name: str, arguments: dict) -> list:
        """Call a tool and return its content blocks.

        Raises:
            ProviderError: transport failure or the tool reported an error.
        """
        result = self.request("tools/call", {"name": name, "arguments": arguments})
        content = result.get("content", [])
        if result.get("isError"):
            raise ProviderError(content_text(content) or f"Tool '{name}' failed")
        return content

    def request(self, method: str, params: dict = None) -> dict:
        """Send a JSON-RPC request and wait for its response."""
        with self._lock:
            self._next_id += 1
            request_id = self._next_id
            self._send({"jsonrpc": "2.0", "id": request_id, "method": method,
                        "params": params or {}})
            deadline = time.time() + self.timeout_seconds
            while True:
                remaining = deadline - time.time()
                if remaining <= 0:
                    raise ProviderError(
                        f"Provider did not answer '{method}' within {self.timeout_seconds}s"
                    )
                try:
                    message = self._responses.get(timeout=remaining)
                except queue.Empty:
                    continue
                if message is None:
                    raise ProviderError(self._exit_message())
                if message.get("id") != request_id:
                    # Notifications and stale responses
                    continue
                if "error" in message:
                    error = message["error"] or {}
                    raise ProviderError(
                        f"Provider error {error.get('code', '?')}: {error.get('message', 'unknown')}"
                    )
                return message.get("result") or {}

    def notify(self, method: str, params: dict = None) -> None:
        message = {"jsonrpc": "2.0", "method": method}
        if params:
            message["params"] = params
        with self._lock:
            self._send(message)

    def _send(self, message: dict) -> None:
        if not self.running:
            raise ProviderError(self._exit_message())
        try:
            self._proc.stdin.write(json.dumps(message, separators=(",", ":")) + "\n")
            self._proc.stdin.flush()
        except (OSError, ValueError) as e:
            raise ProviderError(f"Provider pipe closed: {e}") from e

    def _read_stdout(self, proc) -> None:
        for line in proc.stdout:
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                self._stderr_tail.append(line)
                continue
            if isinstance(message, dict):
                self._responses.put(message)
        self._responses.put(None)

    def _read_stderr(self, proc) -> None:
        for line in proc.stderr:
            line = line.rstrip()
            if line:
                self._stderr_tail.append(line)

    def _exit_message(self) -> str:
        detail = " | ".join(self._stderr_tail)
        msg = "Filesystem provider exited"
        return f"{msg}: {detail}" if detail else msg


def content_text(content) -> str:
    """Join the text blocks of a tool result into one string."""
    if isinstance(content, str):
        return content
    parts = []
    for item in content or []:
        if isinstance(item, dict) and item.get("type") == "text":
            parts.append(item.get("text", ""))
        elif isinstance(item, str):
            parts.append(item)
        else:
            parts.append(json.dumps(item, indent=2))
    return "\n".join(parts)


def default_roots(candidates, project_root: str = None) -> list[str]:
    """Existing candidate directories plus the project root, in order, no duplicates."""
    roots = []
    for directory in candidates:
        if os.path.isdir(directory) and directory not in roots:
            roots.append(directory)
    project_root = project_root or os.getcwd()
    if project_root not in roots:
        roots.append(project_root)
    return roots
