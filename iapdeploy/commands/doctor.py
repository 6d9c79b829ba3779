"""iapdeploy - Doctor command"""

import shutil
import subprocess
from typing import List, NamedTuple, Optional

import rich_click as click
from rich.table import Table

from iapdeploy.base import BaseCommand
from iapdeploy.config import load_defaults
from iapdeploy.constants import REQUIRED_TOOLS
from iapdeploy.exceptions import ConfigurationError

GCLOUD_ACCOUNT_CMD = [
    "gcloud",
    "auth",
    "list",
    "--filter=status:ACTIVE",
    "--format=value(account)",
]
GCLOUD_DESCRIBE_CMD = ["gcloud", "projects", "describe"]


class Check(NamedTuple):
    label: str
    ok: Optional[bool]  # None: advisory only
    detail: str = ""


def project_access_error(project_id: str) -> str:
    """Why gcloud cannot describe project_id, or '' if it can."""
    cmd = GCLOUD_DESCRIBE_CMD + [project_id, "--format=value(projectId)"]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        return str(e)
    if result.returncode != 0:
        return result.stderr.strip() or f"gcloud exited with code {result.returncode}"
    return ""


def active_gcloud_account() -> str:
    """Account gcloud is logged in with, or '' if none/unknown."""
    try:
        result = subprocess.run(
            GCLOUD_ACCOUNT_CMD, capture_output=True, text=True, timeout=30
        )
    except (OSError, subprocess.TimeoutExpired):
        return ""
    lines = result.stdout.split() if result.returncode == 0 else []
    return lines[0] if lines else ""


class DoctorCommand(BaseCommand):
    """Local prerequisites for a deployment: tools, gcloud login, defaults."""

    def __init__(self, config_path: Optional[str] = None, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.config_path = config_path

    def tool_checks(self) -> List[Check]:
        checks = []
        for tool in REQUIRED_TOOLS:
            path = shutil.which(tool)
            if path:
                checks.append(Check(tool, True, path))
            else:
                checks.append(Check(tool, False, f"{tool} not found on PATH"))
        return checks

    def auth_checks(self) -> List[Check]:
        if not shutil.which("gcloud"):
            return []
        account = active_gcloud_account()
        if account:
            return [Check("gcloud account", True, account)]
        return [Check("gcloud account", False, "Run: gcloud auth login")]

    def config_checks(self) -> List[Check]:
        try:
            defaults = load_defaults(self.config_path)
        except ConfigurationError as e:
            return [Check("config", False, e.format_message())]

        if defaults.project_id:
            checks = [Check("project", True, defaults.project_id)]
            if shutil.which("gcloud"):
                error = project_access_error(defaults.project_id)
                checks.append(Check("project access", not error, error or "gcloud projects describe ok"))
        else:
            checks = [Check("project", None, "Pass --project or export IAPDEPLOY_PROJECT_ID")]
        return checks + [
            Check("zone", True, defaults.vm_zone),
            Check("playbook", True, defaults.playbook),
        ]

    def execute(self) -> None:
        self.show_header(
            title="Doctor",
            subtitle="Tools, gcloud authentication and defaults",
        )

        checks = self.tool_checks() + self.auth_checks() + self.config_checks()

        table = Table(title="Prerequisites", title_justify="left", padding=(0, 1))
        table.add_column("Check", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Details", style="dim")
        for check in checks:
            if check.ok is None:
                status = "[yellow]not set[/yellow]"
            else:
                status = "[green]ok[/green]" if check.ok else "[red]failed[/red]"
            table.add_row(check.label, status, check.detail)
        self.console.print(table)

        failed = [check for check in checks if check.ok is False]
        if failed:
            self.fail(f"{len(failed)} check(s) failed")
        self.say("success", "Prerequisites check passed")


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="YAML config file (default: ~/.iapdeploy.yml)",
)
def doctor(config_path):
    """
    Check local prerequisites

    \b
    - gcloud, ansible-playbook, ssh and git on PATH
    - an active gcloud account
    - resolvable defaults (project, zone, playbook)
    """
    DoctorCommand(config_path=config_path).run()
