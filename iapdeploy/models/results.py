"""
Result Models

Dataclass models for run states, validation checks and execution results.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import Enum


class RunStatus(Enum):
    """Overall outcome of a deployment run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunState(Enum):
    """States of a single driver run."""

    IDLE = "idle"
    CREDENTIAL_FETCHED = "credential_fetched"
    TUNNEL_ESTABLISHED = "tunnel_established"
    PLAYBOOK_RUNNING = "playbook_running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    VALIDATION_RUNNING = "validation_running"
    REPORTED = "reported"


@dataclass(frozen=True)
class ComponentStatus:
    """Result of one presence/version check."""

    name: str
    command: str
    installed: bool
    version: str = ""
    detail: str = ""

    @property
    def status(self) -> str:
        return "installed" if self.installed else "missing"

    def to_dict(self) -> Dict[str, str]:
        data = {"status": self.status, "version": self.version}
        if self.detail:
            data["detail"] = self.detail
        return data


@dataclass
class ValidationReport:
    """Aggregated component checks, in check order."""

    components: list[ComponentStatus] = field(default_factory=list)

    def add(self, component: ComponentStatus) -> None:
        self.components.append(component)

    @property
    def installed(self) -> list[str]:
        return [c.name for c in self.components if c.installed]

    @property
    def missing(self) -> list[str]:
        return [c.name for c in self.components if not c.installed]

    @property
    def all_installed(self) -> bool:
        return not self.missing

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {c.name: c.to_dict() for c in self.components}

    def __repr__(self) -> str:
        return f"ValidationReport(installed={len(self.installed)}, missing={len(self.missing)})"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one driver run. Produced once, never mutated."""

    status: RunStatus
    exit_code: int
    duration: float
    log_path: Optional[str] = None
    output_tail: tuple[str, ...] = ()
    validation: Optional[ValidationReport] = None
    states: tuple[RunState, ...] = ()

    @property
    def is_success(self) -> bool:
        """Check if the run succeeded."""
        return self.status == RunStatus.SUCCEEDED

    @property
    def validation_skipped(self) -> bool:
        return self.validation is None

    def to_report(self) -> Dict[str, Any]:
        """Execution report: status, exit code, duration, validation."""
        return {
            "status": self.status.value,
            "exit_code": self.exit_code,
            "duration": round(self.duration, 2),
            "validation": self.validation.to_dict() if self.validation else {},
        }

    def __repr__(self) -> str:
        return (
            f"ExecutionResult(status={self.status.value}, "
            f"exit_code={self.exit_code}, duration={self.duration:.2f}s)"
        )


@dataclass
class SSHResult:
    """Result of an SSH command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    host: str = ""
    command: str = ""
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        """Check if SSH command succeeded."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"SSHResult(host={self.host}, returncode={self.returncode}, duration={self.duration_seconds:.2f}s)"
