"""Post-deployment validation: presence and version of runtime components."""

import shlex
from typing import Iterable, Optional

from iapdeploy.constants import VALIDATION_COMPONENTS, VALIDATION_CHECK_TIMEOUT
from iapdeploy.models.results import ComponentStatus, ValidationReport
from iapdeploy.services.ssh_service import SSHService


def build_check_command(command: str) -> str:
    """Remote shell snippet printing the first version line if installed."""
    cmd = shlex.quote(command)
    return f"command -v {cmd} >/dev/null 2>&1 && {cmd} --version 2>&1 | head -n1"


class ValidationService:
    """
    Runs every component check and aggregates the outcome.

    Checks are independent: one failing, erroring or timing out never
    stops the remaining checks.
    """

    def __init__(
        self,
        ssh_service: SSHService,
        components: Optional[Iterable[tuple[str, str]]] = None,
        logger=None,
        timeout: float = VALIDATION_CHECK_TIMEOUT,
    ):
        self.ssh_service = ssh_service
        self.components = list(components if components is not None else VALIDATION_COMPONENTS)
        self.logger = logger
        self.timeout = timeout

    def run(self) -> ValidationReport:
        """Check all components in order."""
        report = ValidationReport()

        for name, command in self.components:
            status = self.check_component(name, command)
            report.add(status)

            if self.logger:
                if status.installed:
                    self.logger.success(f"{name}: {status.version or 'installed'}")
                else:
                    self.logger.warning(f"{name}: not installed")

        if self.logger:
            self.logger.log(
                f"Validation: {len(report.installed)} installed, {len(report.missing)} missing",
                "INFO",
            )
        return report

    def check_component(self, name: str, command: str) -> ComponentStatus:
        """Run a single check; errors are reported as missing."""
        try:
            result = self.ssh_service.execute_command(
                build_check_command(command), timeout=self.timeout
            )
        except (TimeoutError, OSError) as e:
            return ComponentStatus(name=name, command=command, installed=False, detail=str(e))

        if not result.is_success:
            return ComponentStatus(
                name=name,
                command=command,
                installed=False,
                detail=result.stderr.strip(),
            )

        version = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        return ComponentStatus(name=name, command=command, installed=True, version=version)
