"""Filesystem access gateway: validate, then delegate to the tool-provider.

Every entry point runs PathSafetyValidator first. An unsafe path raises
AccessDeniedError and nothing is sent to the provider. A safe path is passed
unchanged as an argument to a provider whose root set was fixed when it
started; the gateway never widens that set.

There is no direct filesystem fallback. If the provider cannot be started,
the error propagates.
"""

import threading

from core.errors import AccessDeniedError, ProviderError
from core.path_validator import PathSafetyValidator


# Preferred tool names per operation, then a substring fallback.
# Provider versions differ, so names are discovered at connect time.
_TOOL_NAMES = {
    "read": (("read_file", "read_text_file", "readFile"), "read"),
    "write": (("write_file", "writeFile"), "write"),
    "list": (("list_directory", "listDirectory", "list"), "list"),
}


def pick_tool(tools: list[dict], operation: str) -> dict | None:
    """Choose the provider tool that implements an operation, if any."""
    exact, fragment = _TOOL_NAMES[operation]
    by_name = {t.get("name"): t for t in tools if t.get("name")}
    for name in exact:
        if name in by_name:
            return by_name[name]
    for name, tool in by_name.items():
        # "read_multiple_files" takes a list of paths, not a path
        if fragment in name.lower() and "multiple" not in name.lower():
            return tool
    return None


def _content_arg(tool: dict) -> str:
    """Name of the argument carrying file content for a write tool."""
    properties = (tool.get("inputSchema") or {}).get("properties") or {}
    if "content" in properties:
        return "content"
    if "contents" in properties:
        return "contents"
    return "content"


class FileAccessGateway:
    """Validated read/write/list through a lazily started provider session."""

    def __init__(self, validator: PathSafetyValidator, provider_factory,
                 provider_roots=()):
        """
        Args:
            validator: PathSafetyValidator consulted before every operation.
            provider_factory: zero-argument callable returning an unstarted
                ToolProviderClient (or a compatible fake in tests).
            provider_roots: the roots the factory starts the provider with,
                kept for reporting only.
        """
        self.validator = validator
        self.provider_factory = provider_factory
        self.provider_roots = tuple(provider_roots)
        self.provider = None
        self.tools: dict[str, dict] = {}
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.provider is not None

    def connect(self) -> None:
        """Start the provider and discover its tools, exactly once.

        Raises:
            ProviderConnectionError: the provider could not be started.
        """
        with self._lock:
            if self.provider is not None:
                return
            provider = self.provider_factory()
            provider.start()
            try:
                available = provider.list_tools()
            except ProviderError:
                provider.close()
                raise
            self.tools = {}
            for operation in _TOOL_NAMES:
                tool = pick_tool(available, operation)
                if tool is not None:
                    self.tools[operation] = tool
            self.provider = provider

    def disconnect(self) -> None:
        with self._lock:
            provider, self.provider = self.provider, None
            self.tools = {}
        if provider is not None:
            provider.close()

    def check(self, path: str) -> None:
        """Raise AccessDeniedError unless the validator judges the path safe."""
        verdict = self.validator.is_safe(path)
        if not verdict["safe"]:
            raise AccessDeniedError(verdict["reason"])

    def read(self, path: str) -> tuple[str, list]:
        """Read a file. Returns (tool name, content blocks)."""
        self.check(path)
        return self._call("read", {"path": path})

    def write(self, path: str, content: str) -> tuple[str, list]:
        """Write a file. Returns (tool name, result blocks)."""
        self.check(path)
        tool = self._tool("write")
        return self._call("write", {"path": path, _content_arg(tool): content})

    def list(self, path: str) -> tuple[str, list]:
        """List a directory. Returns (tool name, content blocks)."""
        self.check(path)
        return self._call("list", {"path": path})

    def _tool(self, operation: str) -> dict:
        self.connect()
        tool = self.tools.get(operation)
        if tool is None:
            raise ProviderError(f"No file {operation} tool found in provider")
        return tool

    def _call(self, operation: str, arguments: dict) -> tuple[str, list]:
        tool = self._tool(operation)
        content = self.provider.call_tool(tool["name"], arguments)
        return tool["name"], content
