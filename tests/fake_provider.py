"""Stand-in filesystem tool-provider for the tests.

Speaks the same newline-delimited JSON-RPC 2.0 over stdio as the real
filesystem server, and performs real file I/O confined to the roots given on
its command line:

    python fake_provider.py [--flags...] ROOT [ROOT...]

Flags:
    --exit-immediately   exit before answering anything
    --alt-names          camelCase tool names, write takes "contents"
    --no-write           do not expose a write tool
    --paginate           split tools/list over two pages
    --noisy              emit a notification and a non-JSON line first
    --slow               never answer tools/call

Every tools/call is appended as a JSON line to $FAKE_PROVIDER_LOG when set.
"""

import json
import os
import sys


def _tools(flags):
    path_schema = {"type": "object", "properties": {"path": {"type": "string"}}}
    content_key = "contents" if "--alt-names" in flags else "content"
    write_schema = {
        "type": "object",
        "properties": {"path": {"type": "string"}, content_key: {"type": "string"}},
    }
    if "--alt-names" in flags:
        tools = [
            {"name": "readFile", "inputSchema": path_schema},
            {"name": "writeFile", "inputSchema": write_schema},
            {"name": "listDirectory", "inputSchema": path_schema},
        ]
    else:
        tools = [
            {"name": "read_multiple_files", "inputSchema": path_schema},
            {"name": "read_file", "inputSchema": path_schema},
            {"name": "write_file", "inputSchema": write_schema},
            {"name": "list_directory", "inputSchema": path_schema},
        ]
    if "--no-write" in flags:
        tools = [t for t in tools if "rite" not in t["name"]]
    return tools


def _inside(path, roots):
    real = os.path.realpath(path)
    for root in roots:
        root = os.path.realpath(root)
        if real == root or real.startswith(root.rstrip(os.sep) + os.sep):
            return True
    return False


def _text(text, is_error=False):
    result = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


def _call(name, arguments, roots):
    path = arguments.get("path", "")
    if not _inside(path, roots):
        return _text(f"Access denied - path outside allowed directories: {path}", True)
    try:
        if "read" in name.lower():
            with open(path, "r", encoding="utf-8") as f:
                return _text(f.read())
        if "write" in name.lower():
            content = arguments.get("content", arguments.get("contents"))
            if content is None:
                return _text("Missing content argument", True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            return _text(f"Successfully wrote to {path}")
        if "list" in name.lower():
            lines = []
            for entry in sorted(os.listdir(path)):
                kind = "[DIR]" if os.path.isdir(os.path.join(path, entry)) else "[FILE]"
                lines.append(f"{kind} {entry}")
            return _text("\n".join(lines))
    except OSError as e:
        return _text(f"Error: {e}", True)
    return _text(f"Unknown tool: {name}", True)


def _send(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def main(argv):
    flags = [a for a in argv if a.startswith("--")]
    roots = [a for a in argv if not a.startswith("--")]
    if "--exit-immediately" in flags:
        sys.stderr.write("fake provider: refusing to start\n")
        return 3

    log_path = os.environ.get("FAKE_PROVIDER_LOG")
    tools = _tools(flags)

    if "--noisy" in flags:
        sys.stdout.write("fake provider starting up\n")
        _send({"jsonrpc": "2.0", "method": "notifications/message",
               "params": {"level": "info", "data": "hello"}})
        sys.stdout.flush()

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        message = json.loads(line)
        method = message.get("method")
        if "id" not in message:
            continue
        params = message.get("params") or {}
        reply = {"jsonrpc": "2.0", "id": message["id"]}

        if method == "initialize":
            reply["result"] = {
                "protocolVersion": params.get("protocolVersion"),
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "fake-filesystem", "version": "0.0.1"},
            }
        elif method == "tools/list":
            if "--paginate" in flags and not params.get("cursor"):
                reply["result"] = {"tools": tools[:1], "nextCursor": "page-2"}
            elif "--paginate" in flags:
                reply["result"] = {"tools": tools[1:]}
            else:
                reply["result"] = {"tools": tools}
        elif method == "tools/call":
            if "--slow" in flags:
                continue
            if log_path:
                with open(log_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(params) + "\n")
            reply["result"] = _call(params.get("name", ""), params.get("arguments") or {}, roots)
        else:
            reply["error"] = {"code": -32601, "message": f"Method not found: {method}"}
        _send(reply)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
