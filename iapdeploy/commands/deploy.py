"""iapdeploy - Deploy command"""

from pathlib import Path

import rich_click as click

from iapdeploy.base import DeploymentCommand
from iapdeploy.commands.options import target_options, output_options, parse_extra_vars
from iapdeploy.constants import DEFAULT_LOCK_TIMEOUT
from iapdeploy.services import ExecutionDriver
from iapdeploy.ui_components import show_result


class DeployCommand(DeploymentCommand):
    """Run the playbook against the target VM and validate the result."""

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT, **kwargs):
        super().__init__(**kwargs)
        self.lock_timeout = lock_timeout

    def execute(self) -> None:
        """Execute deploy command."""
        config = self.resolve_config()
        inventory = self.render_inventory(config)

        self.show_header(
            title="Deploy",
            subtitle="Ansible over IAP tunnel",
            details=config.summary(),
        )

        logger = self.init_logger(config.target_vm, "deploy")
        logger.log(f"Resolved: {config!r}", "INFO")

        driver = ExecutionDriver(
            logger,
            lock_timeout=self.lock_timeout,
            verbose=self.verbose,
        )
        result = driver.run(config, inventory)

        if self.json_output:
            self.emit_json(result.to_report())
            return

        show_result(result, self.console)


@click.command()
@target_options
@click.option("--playbook", help="Playbook file (relative to --playbook-dir or the repo)")
@click.option("--playbook-dir", type=click.Path(file_okay=False, path_type=Path), help="Directory holding local playbooks (default: cwd)")
@click.option("--git-repo", help="Git repository to fetch playbooks from")
@click.option("--git-branch", help="Branch or tag of --git-repo")
@click.option(
    "--extra-var",
    "-e",
    "extra_vars",
    multiple=True,
    callback=parse_extra_vars,
    help="Extra variable KEY=VALUE (repeatable)",
)
@click.option("--skip-validation", is_flag=True, help="Skip post-deployment checks")
@click.option("--strict", is_flag=True, help="Fail the run if any component is missing")
@click.option("--tunnel-timeout", type=float, help="Seconds to wait for the IAP tunnel")
@click.option("--playbook-timeout", type=float, help="Seconds before the playbook is killed")
@click.option(
    "--lock-timeout",
    type=float,
    default=DEFAULT_LOCK_TIMEOUT,
    show_default=True,
    help="Seconds to wait while another run holds the VM",
)
@output_options
def deploy(
    target_vm,
    vm_zone,
    project_id,
    ansible_user,
    service_account,
    ssh_key_secret,
    request_file,
    config_path,
    playbook,
    playbook_dir,
    git_repo,
    git_branch,
    extra_vars,
    skip_validation,
    strict,
    tunnel_timeout,
    playbook_timeout,
    lock_timeout,
    log_dir,
    json_output,
    verbose,
):
    """
    Run a playbook on a VM through an IAP tunnel

    \b
    Examples:
      iapdeploy deploy --target vm-a --zone us-central1-a
      iapdeploy deploy -t vm-a -p my-project --playbook golden-image-rhel9.yml
      iapdeploy deploy --request request.yml --skip-validation
    """
    overrides = {
        "target_vm": target_vm,
        "vm_zone": vm_zone,
        "project_id": project_id,
        "ansible_user": ansible_user,
        "service_account": service_account,
        "ssh_key_secret": ssh_key_secret,
        "playbook": playbook,
        "git_repo": git_repo,
        "git_branch": git_branch,
        "skip_validation": True if skip_validation else None,
    }
    run_options = {
        "strict_validation": True if strict else None,
        "tunnel_timeout": tunnel_timeout,
        "playbook_timeout": playbook_timeout,
    }

    cmd = DeployCommand(
        overrides=overrides,
        request_file=request_file,
        config_path=config_path,
        playbook_dir=playbook_dir,
        extra_vars=extra_vars,
        run_options=run_options,
        lock_timeout=lock_timeout,
        verbose=verbose,
        json_output=json_output,
        log_root=log_dir,
    )
    cmd.run()
