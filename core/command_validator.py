"""Command validation for the terminal gateway.

Five-stage, deny-by-default pipeline. Stops at the first failing stage:
1. Shape: must be a non-empty string of at most 2048 characters
2. Control characters: NUL and other non-printables are refused
3. Blacklist: destructive / privilege-escalating substrings (named in the reason)
4. Injection: shell metacharacters, redirection, expansion, traversal, line
   breaks, and on POSIX any quote or backslash
5. Whitelist: the command must start with an approved read-only prefix and
   carry none of the options that make that command write

No quoting survives stage 4, so the argv CommandExecutor builds is the
validated string split on ASCII whitespace, token for token.

The whitelist is the security boundary. Stages 3 and 4 name what was wrong.

The validator is pure: no state, no I/O, same input gives the same verdict.
"""

import re
import unicodedata

from core.rules import CommandRules, select_command_rules


# NUL, C0 controls except tab/LF/CR, and DEL. Line breaks are stage 4's job.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# Zero-width and bidi formatting characters used to split keywords
_INVISIBLE_RE = re.compile(r"[\u200b-\u200f\u202a-\u202e\u2060-\u2064\ufeff]")


def _deny(reason: str) -> dict:
    return {"valid": False, "reason": reason}


def _normalize_for_scan(command: str) -> str:
    """Fold Unicode look-alikes so they are scanned as their ASCII forms.

    Only used for scanning. The string that is executed is never rewritten.
    """
    command = _INVISIBLE_RE.sub("", command)
    return unicodedata.normalize("NFKC", command)


class CommandValidator:
    """Validates shell commands against one platform's CommandRules."""

    def __init__(self, rules: CommandRules = None):
        self.rules = rules or select_command_rules()
        self._dangerous = tuple(
            (entry, self._compile_entry(entry))
            for entry in self.rules.dangerous_substrings
        )

    @staticmethod
    def _compile_entry(entry: str) -> re.Pattern:
        # Anchor at a word start so "cat" does not trip "at " and
        # "--format" does not trip "format"
        anchor = r"(?<![\w-])" if entry[:1].isalnum() else ""
        return re.compile(anchor + re.escape(entry))

    def validate(self, command) -> dict:
        """Validate a command string.

        Returns:
            {"valid": True} or {"valid": False, "reason": str}.
        """
        # Stage 1: type and shape
        if not isinstance(command, str) or not command.strip():
            return _deny("Invalid command: must be a non-empty string")
        if len(command) > self.rules.max_length:
            return _deny("Command too long")

        # Stage 2: control characters
        if _CONTROL_CHARS_RE.search(command):
            return _deny("Invalid characters detected")

        scanned = _normalize_for_scan(command)
        lowered = scanned.lower().strip()

        # Stage 3: blacklist, on the command head only
        head = self._command_head(lowered)
        for entry, pattern in self._dangerous:
            if pattern.search(head):
                return _deny(f"Dangerous command blocked: {entry.strip()}")

        # Stage 4: injection patterns (original and folded forms)
        for text in (command, scanned):
            for pattern, label in self.rules.injection_patterns:
                match = pattern.search(text)
                if match:
                    return _deny(
                        f"Command injection attempt detected: {label} ({match.group(0)!r})"
                    )

        # Stage 5: whitelist, then options that make a listed command write
        raw = command.lower().strip()
        if not self._is_whitelisted(raw):
            return _deny("Command not in whitelist of safe operations")
        for pattern, label in self.rules.refused_options:
            if pattern.search(raw):
                return _deny(f"Command option not allowed: {label}")

        return {"valid": True}

    def _command_head(self, text: str) -> str:
        """Return the part of a command before its first injection pattern.

        A chained tail ("echo hi; rm -rf /") is reported by the injection
        stage, which names the metacharacter instead of the payload.
        """
        cut = len(text)
        for pattern, _label in self.rules.injection_patterns:
            match = pattern.search(text)
            if match and match.start() < cut:
                cut = match.start()
        return text[:cut]

    def _is_whitelisted(self, lowered: str) -> bool:
        for prefix in self.rules.whitelist_prefixes:
            if not lowered.startswith(prefix):
                continue
            rest = lowered[len(prefix):]
            if prefix.endswith(" "):
                # "cat " needs an argument
                if rest.strip():
                    return True
            elif not rest or rest[0].isspace():
                # "ls" matches "ls" and "ls -la", not "lsblk"
                return True
        return False
