"""Path safety validation for the filesystem gateway.

Nine stages, first failure wins:
1. Shape: non-empty string, no NUL bytes, at most 4096 characters
2. Normalize and resolve to an absolute path (symlinks are NOT followed here)
3. Traversal scan on the ORIGINAL string: raw, URL-encoded, double-encoded,
   overlong UTF-8 and mixed-separator variants of ".."
4. Dangerous names: UNC/drive prefixes, shell metacharacters, reserved
   device names, always-blocked executable extensions
5. Restricted roots (exact prefixes and "*" wildcard entries)
6. Sensitive subpaths anywhere in the path (.ssh, .gnupg, autostart)
7. Root-depth rule: shallow paths only under explicitly allowed roots
8. Executables/scripts only inside the project root, never in system bin dirs
9. Symlinks: the link target (and the real path behind any linked parent
   directory) is validated with this same pipeline, bounded in depth

Filesystem probes only happen in stage 9. A path that does not exist is not a
link. Any other failure to read link metadata is reported as unsafe.
"""

import ntpath
import os
import posixpath
import re
import stat
from urllib.parse import unquote

from core.rules import PathRules, select_path_rules


# ".." as a whole path segment, either separator
_DOTDOT_SEGMENT_RE = re.compile(r"(^|[\\/])\.\.([\\/]|$)")

# Characters never legitimate in a path handed to the gateway
_PATH_METACHARS_RE = re.compile(r'[<>:"|?*]')

_DRIVE_PREFIX_RE = re.compile(r"^[A-Za-z]:")

# Rounds of URL decoding applied when looking for hidden ".." segments
_DECODE_ROUNDS = 3


def _unsafe(reason: str) -> dict:
    return {"safe": False, "reason": reason}


def _link_unsafe(verdict: dict) -> dict:
    reason = verdict["reason"]
    if reason.startswith("Symlink target unsafe: "):
        return verdict
    return _unsafe(f"Symlink target unsafe: {reason}")


class PathSafetyValidator:
    """Judges whether a path may be handed to the filesystem tool-provider."""

    def __init__(self, rules: PathRules = None, project_root: str = None):
        self.rules = rules or select_path_rules()
        self._pathmod = ntpath if self.rules.windows else posixpath
        # Only probe the disk when the rule flavour matches this host
        self._probe_fs = self._pathmod is os.path

        root = project_root or os.getcwd()
        roots = {self._canonical(self._resolve(root))}
        if self._probe_fs:
            roots.add(self._canonical(os.path.realpath(root)))
        self.project_roots = tuple(sorted(roots))

        self._wildcard_roots = tuple(
            re.compile("^" + re.escape(entry).replace(r"\*", "[^/]+") + "(/|$)")
            for entry in self.rules.restricted_roots if "*" in entry
        )
        self._exact_roots = tuple(
            entry.rstrip("/") for entry in self.rules.restricted_roots
            if "*" not in entry
        )

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    def is_safe(self, path) -> dict:
        """Validate a path.

        Returns:
            {"safe": True} or {"safe": False, "reason": str}.
        """
        return self._check(path, depth=0)

    # --------------------------------------------------------
    # Pipeline
    # --------------------------------------------------------

    def _check(self, path, depth: int) -> dict:
        if depth > self.rules.max_link_depth:
            return _unsafe("Too many levels of symbolic links")

        # Stage 1: shape
        if not isinstance(path, str) or not path:
            return _unsafe("Invalid path: path must be a non-empty string")
        if "\x00" in path:
            return _unsafe("Invalid path: null bytes detected")
        if len(path) > self.rules.max_length:
            return _unsafe("Invalid path: path too long")

        # Stage 2: normalize and resolve
        try:
            resolved = self._resolve(path)
        except (ValueError, OSError):
            return _unsafe("Invalid path format")
        canonical = self._canonical(resolved)

        # Stage 3: traversal, on the original string
        if self._has_traversal(path):
            return _unsafe("Path traversal attempt detected")

        # Stage 4: dangerous names
        if self._has_dangerous_pattern(path, resolved):
            return _unsafe("Invalid path: dangerous pattern detected")

        # Stage 5: restricted roots
        if self._is_restricted(canonical):
            return _unsafe("Path is in restricted system area")

        # Stage 6: sensitive subpaths regardless of root
        probe = canonical.rstrip("/") + "/"
        if any(sub in probe for sub in self.rules.sensitive_subpaths):
            return _unsafe("Access to sensitive user directories restricted")

        # Stage 7: root-depth rule
        if self._depth(canonical) <= 2 and not self._under_any(canonical, self.rules.allowed_roots):
            return _unsafe("Root-level access restricted to safe directories")

        # Stage 8: executables and scripts
        ext = self._pathmod.splitext(canonical)[1].lower()
        if ext in self.rules.executable_extensions:
            if not self._under_any(canonical, self.project_roots):
                return _unsafe("Access to executable files outside project directory restricted")
            if self._under_any(canonical, self.rules.system_exec_dirs):
                return _unsafe("Access to system executable directories restricted")

        # Stage 9: symlinks
        if self._probe_fs:
            verdict = self._check_links(resolved, depth)
            if not verdict["safe"]:
                return verdict

        return {"safe": True}

    def _check_links(self, resolved: str, depth: int) -> dict:
        try:
            st = os.lstat(resolved)
        except (FileNotFoundError, NotADirectoryError):
            st = None
        except OSError as e:
            return _unsafe(f"Could not inspect symlink: {e.strerror or e}")

        if st is not None and stat.S_ISLNK(st.st_mode):
            try:
                target = os.readlink(resolved)
            except OSError as e:
                return _unsafe(f"Could not inspect symlink: {e.strerror or e}")
            target_path = os.path.normpath(
                os.path.join(os.path.dirname(resolved), target)
            )
            verdict = self._check(target_path, depth + 1)
            if not verdict["safe"]:
                return _link_unsafe(verdict)

        # A linked parent directory moves the whole path somewhere else
        try:
            real = os.path.realpath(resolved)
        except (OSError, ValueError) as e:
            return _unsafe(f"Could not inspect symlink: {e}")
        if self._canonical(real) != self._canonical(resolved):
            verdict = self._check(real, depth + 1)
            if not verdict["safe"]:
                return _link_unsafe(verdict)

        return {"safe": True}

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------

    def _resolve(self, path: str) -> str:
        return self._pathmod.normpath(self._pathmod.abspath(path))

    def _canonical(self, path: str) -> str:
        """Comparison form: forward slashes, lower-case on Windows."""
        if self.rules.windows:
            return path.replace("\\", "/").lower()
        return path

    def _has_traversal(self, path: str) -> bool:
        lowered = path.lower()
        if any(pattern in lowered for pattern in self.rules.traversal_patterns):
            return True
        if _DOTDOT_SEGMENT_RE.search(path):
            return True
        decoded = path
        for _ in range(_DECODE_ROUNDS):
            decoded = unquote(decoded)
            if _DOTDOT_SEGMENT_RE.search(decoded):
                return True
        return False

    def _has_dangerous_pattern(self, path: str, resolved: str) -> bool:
        # UNC and POSIX implementation-defined "//" prefixes
        if path.startswith(("\\\\", "//")):
            return True

        if self.rules.windows:
            rest = ntpath.splitdrive(path)[1]
        else:
            if _DRIVE_PREFIX_RE.match(path):
                return True
            rest = path
        if _PATH_METACHARS_RE.search(rest):
            return True

        basename = self._pathmod.basename(resolved)
        stem, ext = self._pathmod.splitext(basename)
        if stem.rstrip(" .").lower() in self.rules.reserved_names:
            return True
        if ext.lower() in self.rules.blocked_extensions:
            return True
        return False

    def _is_restricted(self, canonical: str) -> bool:
        if self._under_any(canonical, self._exact_roots):
            return True
        return any(pattern.match(canonical) for pattern in self._wildcard_roots)

    def _depth(self, canonical: str) -> int:
        segments = [s for s in canonical.split("/") if s]
        if self.rules.windows and segments and segments[0].endswith(":"):
            segments = segments[1:]
        return len(segments)

    @staticmethod
    def _under_any(canonical: str, roots) -> bool:
        """True if canonical equals a root or sits below it on a segment boundary."""
        for root in roots:
            root = root.rstrip("/") or "/"
            if canonical == root:
                return True
            if canonical.startswith(root if root == "/" else root + "/"):
                return True
        return False
