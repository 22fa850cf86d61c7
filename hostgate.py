"""hostgate: validated shell and filesystem access for AI agents.

Every command goes through a whitelist validator before it is spawned
(without a shell). Every path goes through a path-safety validator before it
is handed to a sandboxed filesystem tool-provider.

Usage:
    hostgate check-command "git status"
    hostgate check-path /etc/shadow
    hostgate run "ls -la"
    hostgate read ./README.md
    hostgate write ./notes.txt "hello"
    hostgate ls /tmp
    hostgate info
    hostgate init-config > .hostgate.toml

Run 'hostgate --help' for all options.
"""

import argparse
import os
import sys

# Add parent directory to path so imports work when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.config import ConfigError, DEFAULTS, load_config, merge_cli_args
from ui.cli import run_cli


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostgate",
        description="hostgate: validated shell and filesystem access",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to config file (default: auto-detect .hostgate.toml)",
    )
    parser.add_argument(
        "--no-config", action="store_true",
        help="Ignore config files, use only CLI flags",
    )
    parser.add_argument(
        "--platform", default=None,
        help="Rule set to apply: Linux, Darwin or Windows (default: this host)",
    )
    parser.add_argument(
        "--project-root", default=None,
        help="Project directory; executables are only reachable inside it (default: cwd)",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Command timeout seconds (default: 5)")
    parser.add_argument("--max-output", type=int, default=None, help="Max characters kept per output stream")
    parser.add_argument("--provider-command", default=None, help="Filesystem provider executable (default: npx)")
    parser.add_argument("--provider-timeout", type=float, default=None, help="Provider request timeout seconds (default: 30)")
    parser.add_argument(
        "--root", action="append", default=None,
        help="Provider root directory (repeatable, default: auto-detect)",
    )
    parser.add_argument(
        "--audit-dir", default=None,
        help="Write a JSONL audit log to this directory",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")

    sub = parser.add_subparsers(dest="subcommand", required=True, metavar="<subcommand>")

    p = sub.add_parser("check-command", help="Validate a command without running it")
    p.add_argument("command")
    p = sub.add_parser("check-path", help="Validate a path without touching it")
    p.add_argument("path")
    p = sub.add_parser("run", help="Validate and run a command")
    p.add_argument("command")
    p = sub.add_parser("read", help="Read a file through the provider")
    p.add_argument("path")
    p = sub.add_parser("write", help="Write a file through the provider")
    p.add_argument("path")
    p.add_argument("content", help="Content to write, or - for stdin")
    p = sub.add_parser("ls", help="List a directory through the provider")
    p.add_argument("path")
    sub.add_parser("info", help="Show allowed commands and paths")
    sub.add_parser("init-config", help="Print a sample .hostgate.toml")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration: DEFAULTS -> config file -> CLI args
    if not args.no_config:
        try:
            config = load_config(args.config)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        config = merge_cli_args(config, args)
    else:
        config = merge_cli_args(dict(DEFAULTS), args)

    config_file = config.get("_config_file")
    if config_file:
        print(f"Config: {config_file}", file=sys.stderr)

    return run_cli(args, config)


if __name__ == "__main__":
    sys.exit(main())
