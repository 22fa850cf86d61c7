"""Configuration file support for hostgate.

Loads settings from .hostgate.toml (project-level) or ~/.hostgate.toml
(user-level). CLI flags override config file values. Config file overrides
defaults.

Uses tomllib (Python 3.11+).
"""

import os
import tomllib
from pathlib import Path


# Default configuration values (same as CLI defaults)
DEFAULTS = {
    "platform": None,
    "project_root": None,
    "command_timeout": 5,
    "max_output_size": 1024 * 1024,
    "provider_command": "npx",
    "provider_args": ["-y", "@modelcontextprotocol/server-filesystem"],
    "provider_roots": None,
    "provider_timeout": 30,
    "audit_dir": None,
}

# Config file search order (first found wins)
CONFIG_FILENAMES = [".hostgate.toml", "hostgate.toml"]
CONFIG_SEARCH_DIRS = [
    ".",                          # Current directory (project-level)
    str(Path.home()),             # Home directory (user-level)
]


class ConfigError(ValueError):
    """The config file exists but could not be parsed."""
    pass


def find_config_file() -> str | None:
    """Find the first config file in the search path."""
    for directory in CONFIG_SEARCH_DIRS:
        for filename in CONFIG_FILENAMES:
            path = os.path.join(directory, filename)
            if os.path.isfile(path):
                return path
    return None


def load_config(config_path: str = None) -> dict:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.

    Returns:
        Dict of configuration values. Missing keys use DEFAULTS.

    Raises:
        ConfigError: the file is not valid TOML.
    """
    config = dict(DEFAULTS)

    # Find config file
    path = config_path or find_config_file()
    if not path or not os.path.isfile(path):
        return config

    try:
        with open(path, "rb") as f:
            file_config = tomllib.load(f)
    except OSError:
        return config
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    # Normalize key names (TOML uses - or _, CLI uses _)
    normalized = {}
    for key, value in file_config.items():
        norm_key = key.replace("-", "_")
        normalized[norm_key] = value

    # Merge: file values override defaults. Unknown keys are ignored.
    for key, value in normalized.items():
        if key in config:
            config[key] = value

    config["_config_file"] = path
    return config


def merge_cli_args(config: dict, args) -> dict:
    """Merge CLI arguments over config file values.

    CLI args that are None (not given) don't override config.
    Explicitly set CLI args always win.
    """
    result = dict(config)

    # Map argparse attribute names to config keys
    mappings = {
        "platform": "platform",
        "project_root": "project_root",
        "timeout": "command_timeout",
        "max_output": "max_output_size",
        "provider_command": "provider_command",
        "provider_timeout": "provider_timeout",
        "root": "provider_roots",
        "audit_dir": "audit_dir",
    }

    for arg_name, config_key in mappings.items():
        cli_value = getattr(args, arg_name, None)
        if cli_value is None:
            continue
        # Repeated flags with nothing collected don't override
        if isinstance(cli_value, list) and not cli_value:
            continue
        result[config_key] = cli_value

    return result


def generate_sample_config() -> str:
    """Generate a sample .hostgate.toml config file."""
    return '''# hostgate configuration
# Place this file at .hostgate.toml (project) or ~/.hostgate.toml (user)

# Rule set: "Linux", "Darwin" or "Windows". Auto-detected if omitted.
# platform = "Linux"

# Executables and scripts are only reachable inside this directory.
# Defaults to the current directory.
# project_root = "/home/me/project"

# Terminal
command_timeout = 5                # seconds, the process is killed after this
max_output_size = 1048576          # characters kept per stream

# Filesystem tool-provider (Model Context Protocol filesystem server)
provider_command = "npx"
provider_args = ["-y", "@modelcontextprotocol/server-filesystem"]
provider_timeout = 30              # seconds per request
# provider_roots = ["/home/me/project", "/tmp"]   # auto-detected if omitted

# Audit log (JSONL). Disabled if omitted.
# audit_dir = "."
'''
