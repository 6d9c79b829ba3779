"""iapdeploy - Validate command"""

import rich_click as click

from iapdeploy.base import DeploymentCommand
from iapdeploy.commands.options import target_options, output_options
from iapdeploy.constants import DEFAULT_LOCK_TIMEOUT
from iapdeploy.exceptions import ValidationMismatch
from iapdeploy.services import ExecutionDriver
from iapdeploy.ui_components import validation_table


class ValidateCommand(DeploymentCommand):
    """Check installed runtime components on the target VM."""

    def __init__(self, strict: bool = False, lock_timeout: float = DEFAULT_LOCK_TIMEOUT, **kwargs):
        super().__init__(**kwargs)
        self.strict = strict
        self.lock_timeout = lock_timeout

    def execute(self) -> None:
        """Execute validate command."""
        config = self.resolve_config()
        # Renders only to reject unsafe identifiers before anything runs
        self.render_inventory(config)

        self.show_header(
            title="Validate",
            subtitle="Package validation check",
            details=config.summary(),
        )

        logger = self.init_logger(config.target_vm, "validate")
        driver = ExecutionDriver(logger, lock_timeout=self.lock_timeout, verbose=self.verbose)
        report = driver.validate(config)

        if self.json_output:
            data = {
                "total": len(report.components),
                "installed": len(report.installed),
                "missing": len(report.missing),
                "validation": report.to_dict(),
            }
            self.emit_json(data, exit_code=1 if self.strict and report.missing else 0)
            return

        self.console.print()
        self.console.print(validation_table(report))
        self.console.print(
            f"\nTotal packages checked: {len(report.components)}  "
            f"[green]✓ Installed: {len(report.installed)}[/green]  "
            f"[red]✗ Missing: {len(report.missing)}[/red]"
        )

        if report.all_installed:
            self.say("success", "All packages are installed")
        else:
            self.say("dim", "Run the deploy command to install missing packages")
            if self.strict:
                raise ValidationMismatch(report.missing)


@click.command()
@target_options
@click.option("--strict", is_flag=True, help="Exit non-zero if any component is missing")
@click.option(
    "--lock-timeout",
    type=float,
    default=DEFAULT_LOCK_TIMEOUT,
    show_default=True,
    help="Seconds to wait while another run holds the VM",
)
@output_options
def validate(
    target_vm,
    vm_zone,
    project_id,
    ansible_user,
    service_account,
    ssh_key_secret,
    request_file,
    config_path,
    strict,
    lock_timeout,
    log_dir,
    json_output,
    verbose,
):
    """
    Check Python, Java, Node.js and PostgreSQL client on a VM

    \b
    Checks: python3, pip3, java, javac, node, npm, psql
    """
    overrides = {
        "target_vm": target_vm,
        "vm_zone": vm_zone,
        "project_id": project_id,
        "ansible_user": ansible_user,
        "service_account": service_account,
        "ssh_key_secret": ssh_key_secret,
    }
    cmd = ValidateCommand(
        overrides=overrides,
        request_file=request_file,
        config_path=config_path,
        strict=strict,
        lock_timeout=lock_timeout,
        verbose=verbose,
        json_output=json_output,
        log_root=log_dir,
    )
    cmd.run()
