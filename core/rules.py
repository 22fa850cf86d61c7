"""Rule tables for the hostgate validators.

Everything the validators consult lives here as immutable data: blacklists,
injection patterns, whitelists, restricted and allowed roots. A rule set is
picked once at startup from the host platform and handed to the validator
instances. Nothing in this module is ever derived from user input.

Two shell families are covered:
- POSIX (Linux, macOS, BSD): sh-style metacharacters, ~ expansion, /etc roots
- Windows: cmd-style %VAR% expansion, drive-letter roots, backslash traversal
"""

import platform
import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CommandRules:
    """Command validation and execution rules for one shell family."""

    name: str
    dangerous_substrings: tuple = ()
    # (compiled pattern, short label used in the denial reason)
    injection_patterns: tuple = ()
    whitelist_prefixes: tuple = ()
    # (compiled pattern, label) checked after a whitelist match, for options
    # that turn a read-only command into one that writes
    refused_options: tuple = ()
    # Environment variables copied into the child process, nothing else
    child_env_keys: tuple = ()
    posix: bool = True
    max_length: int = 2048


@dataclass(frozen=True)
class PathRules:
    """Path safety rules for one filesystem family."""

    name: str
    restricted_roots: tuple = ()
    allowed_roots: tuple = ()
    sensitive_subpaths: tuple = ()
    executable_extensions: frozenset = field(default_factory=frozenset)
    blocked_extensions: frozenset = field(default_factory=frozenset)
    system_exec_dirs: tuple = ()
    traversal_patterns: tuple = ()
    reserved_names: frozenset = field(default_factory=frozenset)
    # Default roots handed to the filesystem tool-provider at startup
    provider_roots: tuple = ()
    windows: bool = False
    max_length: int = 4096
    max_link_depth: int = 40


# ============================================================
# Command BLACKLIST: destructive or privilege-escalating substrings
# ============================================================

# Union of every blacklist the terminal validator has carried so far.
# Matching is lower-case and anchored at word starts (see CommandValidator).
_POSIX_DANGEROUS = (
    # Destructive file operations
    "rm -rf", "rm -fr", "rm -r ", "sudo rm", "del /f",
    "format", "fdisk", "mkfs", "shred", "wipefs",
    # System control
    "shutdown", "reboot", "halt", "poweroff", "init 0", "init 6",
    # User/permission changes
    "sudo", "su ", "doas", "passwd", "chown", "chmod 777", "chmod -r",
    "usermod", "userdel", "useradd", "groupmod", "visudo",
    # Process control
    "kill -9", "killall", "pkill",
    # Network/system config
    "iptables", "ufw", "firewall", "mount", "umount", "modprobe", "insmod",
    # Package management with sudo
    "sudo apt", "sudo yum", "sudo dnf", "sudo pacman",
    # Shells and inline interpreters
    "/bin/sh", "/bin/bash", "bash -c", "sh -c", "zsh -c",
    "python -c", "python3 -c", "perl -e", "ruby -e", "node -e", "eval ",
    # Resource intensive or disk-level
    "dd if=", "find /", "locate .",
    # Cron and scheduled tasks
    "crontab", "at ",
    # System service management
    "systemctl", "service ", "systemd",
    # Pipe-to-interpreter
    "curl | sh", "wget | sh", "curl | bash", "wget | bash",
)

_WINDOWS_DANGEROUS = _POSIX_DANGEROUS + (
    "rd /s", "rmdir /s", "del /s", "del /q", "erase ",
    "diskpart", "bcdedit", "cipher /w",
    "reg add", "reg delete", "regedit", "setx",
    "schtasks", "sc create", "sc config", "sc delete",
    "net user", "net localgroup", "icacls", "takeown", "runas",
    "taskkill", "wmic", "certutil",
    "powershell", "pwsh", "cmd /c", "cmd.exe",
    "wscript", "cscript", "mshta", "rundll32", "regsvr32",
)

# ============================================================
# Injection patterns
# ============================================================

_COMMON_INJECTION = (
    (re.compile(r"[;&|`$(){}\[\]]"), "shell metacharacter"),
    (re.compile(r"[<>]"), "redirection"),
    (re.compile(r"\*\*"), "recursive glob"),
    (re.compile(r"^\s*\."), "leading-dot execution"),
    (re.compile(r"\.\./"), "path traversal"),
    (re.compile(r"[\r\n\u2028\u2029]"), "line break"),
)

_POSIX_INJECTION = _COMMON_INJECTION + (
    # shlex would strip these before exec
    (re.compile(r"""['"\\]"""), "quoting or escape"),
    (re.compile(r"\$\{?\w"), "variable expansion"),
    (re.compile(r"~/"), "home expansion"),
)

_WINDOWS_INJECTION = _COMMON_INJECTION + (
    (re.compile(r"""['"]"""), "quoting"),
    (re.compile(r"\.\.\\"), "path traversal"),
    (re.compile(r"%[^%\s]+%"), "variable expansion"),
    (re.compile(r"\^"), "escape character"),
)

# ============================================================
# Command WHITELIST: read-only, informational prefixes
# ============================================================

_POSIX_WHITELIST = (
    # Listing and identity
    "ls", "pwd", "whoami", "id", "date", "uptime", "uname", "hostname",
    # Status and resources
    "df -h", "free -h", "ps aux",
    # Version control, read-only
    "git status", "git log", "git branch", "git diff",
    # Toolchain versions
    "npm list", "npm --version", "node --version",
    "python --version", "python3 --version", "wget --version",
    # File inspection
    "cat ", "head ", "tail ", "grep ", "wc ",
    "which ", "type ", "echo ", "printf ",
    # Diagnostics
    "ping -c",
)

_WINDOWS_WHITELIST = (
    "dir", "cd", "whoami", "hostname", "ver", "systeminfo", "tasklist",
    "ipconfig", "where ", "type ", "echo ", "findstr ",
    "git status", "git log", "git branch", "git diff",
    "npm list", "npm --version", "node --version", "python --version",
    "ping -n",
)

# git accepts unique abbreviations of long options, so "--ou" covers "--output"
_GIT_REFUSED_OPTIONS = (
    (re.compile(r"^git\s(?:.*\s)?--ou"), "--output writes a file"),
    # Only the listing options are accepted after "git branch"
    (
        re.compile(
            r"^git\s+branch(?!(?:\s+(?:-[arvl]+|--(?:all|remotes|verbose|list|show-current)))*\s*$)"
        ),
        "branch changes",
    ),
)

# ============================================================
# Path tables
# ============================================================

_POSIX_RESTRICTED = (
    # Boot and kernel
    "/boot", "/boot/grub", "/sys", "/sys/firmware/efi", "/lib/modules",
    # Process and device pseudo-filesystems
    "/proc", "/dev", "/run",
    # Credentials and authentication
    "/etc/passwd", "/etc/shadow", "/etc/gshadow", "/etc/group",
    "/etc/sudoers", "/etc/sudoers.d", "/etc/ssh", "/etc/security",
    "/etc/pam.d", "/var/log/auth.log", "/usr/bin/sudo",
    # Filesystem, network and scheduler configuration
    "/etc/fstab", "/etc/crontab", "/var/spool/cron", "/etc/hosts",
    "/etc/resolv.conf",
    # Service manager and startup scripts
    "/lib/systemd", "/usr/lib/systemd", "/etc/systemd", "/etc/init.d",
    "/etc/rc0.d", "/etc/rc1.d", "/etc/rc2.d", "/etc/rc3.d",
    "/etc/rc4.d", "/etc/rc5.d", "/etc/rc6.d", "/etc/rcS.d",
    # Package management state
    "/var/lib/dpkg", "/etc/apt", "/etc/yum.repos.d", "/snap/core",
    # System binaries
    "/usr/sbin",
    # Root's home and per-user secrets
    "/root", "/root/.ssh",
    "/home/*/.ssh", "/home/*/.gnupg", "/home/*/.config/autostart",
)

_POSIX_ALLOWED = (
    "/home", "/tmp", "/var/tmp", "/opt", "/usr/local", "/var/www",
    "/etc/nginx", "/etc/apache2", "/var/lib/docker",
)

_WINDOWS_RESTRICTED = (
    "c:/windows", "c:/program files", "c:/program files (x86)",
    "c:/programdata/microsoft", "c:/system volume information",
    "c:/$recycle.bin", "c:/recovery", "c:/boot", "c:/bootmgr",
    "c:/pagefile.sys", "c:/hiberfil.sys",
    "c:/users/*/.ssh", "c:/users/*/.gnupg",
    "c:/users/*/appdata/roaming/microsoft/windows/start menu/programs/startup",
    "c:/users/*/ntuser.dat",
)

_WINDOWS_ALLOWED = (
    "c:/users", "c:/temp", "c:/tmp", "c:/projects", "c:/dev", "c:/src",
    "c:/inetpub",
)

_SENSITIVE_SUBPATHS = ("/.ssh/", "/.gnupg/", "/.config/autostart/")

_EXECUTABLE_EXTENSIONS = frozenset({
    ".sh", ".bat", ".exe", ".com", ".cmd", ".ps1", ".py", ".pl", ".rb",
    ".bin", ".run", ".app", ".deb", ".rpm", ".msi", ".dmg", ".pkg",
    ".so", ".dll", ".dylib",
})

# Always refused, wherever they live
_BLOCKED_EXTENSIONS = frozenset({
    ".bat", ".cmd", ".com", ".exe", ".scr", ".pif", ".reg",
    ".vbs", ".vbe", ".js", ".jar", ".wsf", ".wsh",
})

_POSIX_SYSTEM_EXEC_DIRS = ("/bin", "/sbin", "/usr/bin", "/usr/sbin", "/usr/local/bin")

_WINDOWS_SYSTEM_EXEC_DIRS = ("c:/windows", "c:/program files", "c:/program files (x86)")

# Literal sequences checked against the lower-cased original string
_TRAVERSAL_PATTERNS = (
    "../", "..\\",
    ".\\../", "./\\../",            # Windows variations
    "\\../", "/\\../",              # mixed separators
    "....//", "..../\\",            # multiple dots
    "%2e%2e", "%252e%252e",         # URL and double URL encoded dots
    "..%2f", "..%5c", "%2e%2e%2f", "%2e%2e%5c",
    "%252f", "%255c",
    "..\\u002f", "..\\u005c",       # unicode escapes
    "\\u002e\\u002e",
    "%c0%ae", "%c0%af", "%c1%9c",   # overlong UTF-8
    "%e0%80%ae", "%c1%1c",
    "%u002e", "%uff0e",             # IIS-style unicode
    "\uff0e\uff0e",                 # fullwidth dots
)

_RESERVED_NAMES = frozenset({
    "con", "prn", "aux", "nul",
    "com1", "com2", "com3", "com4", "com5", "com6", "com7", "com8", "com9",
    "lpt1", "lpt2", "lpt3", "lpt4", "lpt5", "lpt6", "lpt7", "lpt8", "lpt9",
})


POSIX_COMMAND_RULES = CommandRules(
    name="posix",
    dangerous_substrings=_POSIX_DANGEROUS,
    injection_patterns=_POSIX_INJECTION,
    whitelist_prefixes=_POSIX_WHITELIST,
    refused_options=_GIT_REFUSED_OPTIONS,
    child_env_keys=("PATH", "HOME", "USER", "TERM"),
    posix=True,
)

WINDOWS_COMMAND_RULES = CommandRules(
    name="windows",
    dangerous_substrings=_WINDOWS_DANGEROUS,
    injection_patterns=_WINDOWS_INJECTION,
    whitelist_prefixes=_WINDOWS_WHITELIST,
    refused_options=_GIT_REFUSED_OPTIONS,
    child_env_keys=("PATH", "USERPROFILE", "USERNAME", "SYSTEMROOT", "TERM"),
    posix=False,
)

POSIX_PATH_RULES = PathRules(
    name="posix",
    restricted_roots=_POSIX_RESTRICTED,
    allowed_roots=_POSIX_ALLOWED,
    sensitive_subpaths=_SENSITIVE_SUBPATHS,
    executable_extensions=_EXECUTABLE_EXTENSIONS,
    blocked_extensions=_BLOCKED_EXTENSIONS,
    system_exec_dirs=_POSIX_SYSTEM_EXEC_DIRS,
    traversal_patterns=_TRAVERSAL_PATTERNS,
    reserved_names=_RESERVED_NAMES,
    provider_roots=_POSIX_ALLOWED,
    windows=False,
)

WINDOWS_PATH_RULES = PathRules(
    name="windows",
    restricted_roots=_WINDOWS_RESTRICTED,
    allowed_roots=_WINDOWS_ALLOWED,
    sensitive_subpaths=_SENSITIVE_SUBPATHS,
    executable_extensions=_EXECUTABLE_EXTENSIONS,
    blocked_extensions=_BLOCKED_EXTENSIONS,
    system_exec_dirs=_WINDOWS_SYSTEM_EXEC_DIRS,
    traversal_patterns=_TRAVERSAL_PATTERNS,
    reserved_names=_RESERVED_NAMES,
    provider_roots=("c:/users", "c:/temp", "c:/projects"),
    windows=True,
)


def _is_windows(system: str = None) -> bool:
    system = system or platform.system()
    return system.lower().startswith(("windows", "win32", "cygwin", "msys"))


def select_command_rules(system: str = None) -> CommandRules:
    """Pick the command rule set for a platform name (default: this host)."""
    return WINDOWS_COMMAND_RULES if _is_windows(system) else POSIX_COMMAND_RULES


def select_path_rules(system: str = None) -> PathRules:
    """Pick the path rule set for a platform name (default: this host)."""
    return WINDOWS_PATH_RULES if _is_windows(system) else POSIX_PATH_RULES
