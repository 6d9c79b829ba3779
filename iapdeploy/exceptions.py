"""
iapdeploy Exception Hierarchy

Every failure of a deployment run maps onto one of these, tagged with the
stage it happened in so callers can diagnose without re-running verbosely.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from iapdeploy.models.results import ExecutionResult


class IapDeployError(Exception):
    """Base exception for all iapdeploy errors."""

    stage = "run"

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class InvalidParameter(IapDeployError):
    """Raised when a deployment parameter fails validation."""

    stage = "resolve"

    def __init__(self, field: str, message: str, context: Optional[str] = None):
        self.field = field
        super().__init__(f"Invalid parameter '{field}': {message}", context)


class RenderError(IapDeployError):
    """Raised when a value is unsafe to place in the proxy command."""

    stage = "render"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        super().__init__(
            f"Cannot render '{field}': {reason}", context=f"Value: {value!r}"
        )


class SourceError(IapDeployError):
    """Raised when the playbook cannot be checked out or found."""

    stage = "source"


class HostBusyError(IapDeployError):
    """Raised when another run holds the lock for the target host."""

    stage = "lock"

    def __init__(self, host_key: str, timeout: float):
        self.host_key = host_key
        message = f"Host '{host_key}' is locked by another deployment"
        context = f"Gave up after {timeout:.0f}s"
        super().__init__(message, context)


class CredentialError(IapDeployError):
    """Raised when the SSH key cannot be fetched from the secret store."""

    stage = "credential"


class TunnelError(IapDeployError):
    """Raised when the IAP tunnel cannot be established."""

    stage = "tunnel"


class StateError(IapDeployError):
    """Raised on an illegal run state transition."""

    stage = "state"


class PlaybookError(IapDeployError):
    """Raised when ansible-playbook exits non-zero."""

    stage = "playbook"

    def __init__(
        self,
        exit_code: int,
        tail: list[str],
        result: Optional["ExecutionResult"] = None,
    ):
        self.exit_code = exit_code
        self.tail = tail
        self.result = result
        message = f"ansible-playbook exited with code {exit_code}"
        context = "\n".join(tail) if tail else None
        super().__init__(message, context)


class ValidationMismatch(IapDeployError):
    """Raised in strict mode when a component check reports missing."""

    stage = "validation"

    def __init__(
        self, missing: list[str], result: Optional["ExecutionResult"] = None
    ):
        self.missing = missing
        self.result = result
        message = f"{len(missing)} component(s) missing after deployment"
        context = f"Missing: {', '.join(missing)}"
        super().__init__(message, context)


class ConfigurationError(IapDeployError):
    """Raised when a config or request file is invalid or missing."""

    stage = "config"
