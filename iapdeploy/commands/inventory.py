"""iapdeploy - Inventory command"""

import json

import rich_click as click

from iapdeploy.base import DeploymentCommand
from iapdeploy.commands.options import target_options


class InventoryCommand(DeploymentCommand):
    """Render the inventory for a request without touching the VM."""

    def __init__(self, output_format: str = "ansible", **kwargs):
        super().__init__(**kwargs)
        self.output_format = output_format

    def execute(self) -> None:
        """Execute inventory command."""
        config = self.resolve_config()
        inventory = self.render_inventory(config)

        if self.output_format == "json":
            print(json.dumps(inventory.to_dict(), indent=2, sort_keys=True))
        else:
            print(inventory.to_yaml(ansible=self.output_format == "ansible"), end="")


@click.command()
@target_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["ansible", "yaml", "json"]),
    default="ansible",
    show_default=True,
    help="ansible: Ansible YAML inventory; yaml/json: plain document",
)
def inventory(
    target_vm,
    vm_zone,
    project_id,
    ansible_user,
    service_account,
    ssh_key_secret,
    request_file,
    config_path,
    output_format,
):
    """
    Render the inventory for a target (no side effects)

    The SSH key file is shown as its Secret Manager reference.
    """
    overrides = {
        "target_vm": target_vm,
        "vm_zone": vm_zone,
        "project_id": project_id,
        "ansible_user": ansible_user,
        "service_account": service_account,
        "ssh_key_secret": ssh_key_secret,
    }
    cmd = InventoryCommand(
        overrides=overrides,
        request_file=request_file,
        config_path=config_path,
        output_format=output_format,
    )
    cmd.run()
