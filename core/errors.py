"""Exception types raised by the hostgate services.

Validation failures are expected and frequent. They carry the validator's
reason and are raised before any process is spawned or any file is touched.
Everything else describes an execution or provider failure.

A command that runs and exits non-zero, or that times out, is NOT an error
here: those are reported in the ExecutionResult dict.
"""


class GatewayError(Exception):
    """Base class for every error raised by the gateway."""
    pass


class ValidationError(GatewayError):
    """A command or path was rejected by its validator."""

    prefix = "Rejected"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"{self.prefix}: {reason}")


class CommandBlockedError(ValidationError):
    """Raised by TerminalService when CommandValidator denies a command."""

    prefix = "Command blocked"


class AccessDeniedError(ValidationError):
    """Raised by the filesystem gateway when PathSafetyValidator denies a path."""

    prefix = "Access denied"


class SpawnError(GatewayError):
    """The executor could not start a subprocess (missing binary, permission)."""
    pass


class ProviderConnectionError(GatewayError):
    """The filesystem tool-provider could not be started or did not handshake."""
    pass


class ProviderError(GatewayError):
    """A tool-provider call failed, timed out, or the needed tool is missing."""
    pass
