"""One-shot command-line front end for hostgate.

Each subcommand builds fresh services from the loaded config, performs one
operation through them, prints the result and returns an exit code. Nothing
here talks to subprocess or the filesystem directly; every command and path
goes through TerminalService / FilesystemService.

Exit codes: 0 allowed / succeeded, 1 denied or failed.
"""

import json
import os
import sys

from core.audit_log import AuditLog
from core.config import generate_sample_config
from core.errors import GatewayError, ValidationError
from core.services import build_services


# ANSI colors (disabled when stdout is not a terminal)
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RED = "\033[31m"
_RESET = "\033[0m"


def _c(code: str, text: str) -> str:
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        return text
    return f"{code}{text}{_RESET}"


# ============================================================
# Result formatting
# ============================================================

def format_command_result(result: dict) -> str:
    """Plain-text rendering of an ExecutionResult."""
    exit_code = result.get("exit_code")
    formatted = f"\nCommand: {result.get('command', '')}\n"
    formatted += f"Exit Code: {'killed' if exit_code is None else exit_code}\n"

    if result.get("output"):
        formatted += f"\nOutput:\n{result['output']}\n"

    if result.get("error"):
        formatted += f"\nError:\n{result['error']}\n"

    return formatted


def format_file_result(response: dict) -> str:
    """Plain-text rendering of a read_file response."""
    if not response or not response.get("content"):
        return "No file content available."
    formatted = f"\nFile: {response['path']}\n\n"
    formatted += response["content"]
    formatted += "\n---\n"
    return formatted


def format_directory_result(response: dict) -> str:
    """Plain-text rendering of a list_directory response, one bullet per entry."""
    if not response or not response.get("contents"):
        return "No directory contents available."
    formatted = f"\nDirectory: {response['path']}\n\n"
    for line in response["contents"].splitlines():
        if line.strip():
            formatted += f"• {line.strip()}\n"
    formatted += "\n---\n"
    return formatted


# ============================================================
# Subcommands
# ============================================================

def _check_command(terminal, filesystem, args) -> int:
    verdict = terminal.validator.validate(args.command)
    if args.json:
        print(json.dumps(verdict))
    elif verdict["valid"]:
        print(_c(_GREEN, "ALLOWED"))
    else:
        print(_c(_RED, f"BLOCKED: {verdict['reason']}"))
    return 0 if verdict["valid"] else 1


def _check_path(terminal, filesystem, args) -> int:
    verdict = filesystem.gateway.validator.is_safe(args.path)
    if args.json:
        print(json.dumps(verdict))
    elif verdict["safe"]:
        print(_c(_GREEN, "SAFE"))
    else:
        print(_c(_RED, f"DENIED: {verdict['reason']}"))
    return 0 if verdict["safe"] else 1


def _run(terminal, filesystem, args) -> int:
    result = terminal.execute_command(args.command)
    if args.json:
        print(json.dumps(result))
    else:
        print(format_command_result(result))
        if result["timed_out"]:
            print(_c(_YELLOW, "Command timed out"))
        elif result["success"]:
            print(_c(_GREEN, "Command completed successfully"))
        else:
            print(_c(_YELLOW, f"Command exited with code: {result['exit_code']}"))
    return 0 if result["success"] else 1


def _read(terminal, filesystem, args) -> int:
    response = filesystem.read_file(args.path)
    if args.json:
        print(json.dumps(response))
    else:
        print(format_file_result(response))
    return 0


def _write(terminal, filesystem, args) -> int:
    content = args.content
    if content == "-":
        content = sys.stdin.read()
    response = filesystem.write_file(args.path, content)
    if args.json:
        print(json.dumps(response))
    else:
        print(_c(_GREEN, response["result"] or f"Wrote {args.path}"))
    return 0


def _ls(terminal, filesystem, args) -> int:
    response = filesystem.list_directory(args.path)
    if args.json:
        print(json.dumps(response))
    else:
        print(format_directory_result(response))
    return 0


def _info(terminal, filesystem, args) -> int:
    commands = terminal.safe_commands_info()
    paths = filesystem.safe_paths_info()
    if args.json:
        print(json.dumps({"commands": commands, "paths": paths}))
    else:
        print(commands["message"])
        print()
        print(paths["message"])
    return 0


HANDLERS = {
    "check-command": _check_command,
    "check-path": _check_path,
    "run": _run,
    "read": _read,
    "write": _write,
    "ls": _ls,
    "info": _info,
}


def run_cli(args, config: dict) -> int:
    """Run one subcommand against freshly built services.

    Returns:
        Process exit code.
    """
    if args.subcommand == "init-config":
        print(generate_sample_config(), end="")
        return 0

    audit = None
    if config.get("audit_dir"):
        audit = AuditLog(config["audit_dir"])

    terminal, filesystem = build_services(config, audit=audit)
    if audit:
        audit.session_start(
            terminal.validator.rules.name,
            terminal.executor.cwd,
            list(filesystem.gateway.provider_roots),
        )

    handler = HANDLERS[args.subcommand]
    try:
        return handler(terminal, filesystem, args)
    except ValidationError as e:
        print(_c(_RED, str(e)), file=sys.stderr)
        return 1
    except GatewayError as e:
        if audit:
            audit.error(args.subcommand, str(e))
        print(_c(_RED, f"Error: {e}"), file=sys.stderr)
        return 1
    finally:
        terminal.disconnect()
        filesystem.disconnect()
        if audit:
            audit.session_end(
                terminal.stats["commands"],
                filesystem.stats["file_ops"],
                terminal.stats["blocked"] + filesystem.stats["blocked"],
            )
