"""Service for rendering the Ansible inventory for a deployment."""

import re

from iapdeploy.constants import ANSIBLE_INTERPRETER, ANSIBLE_INVENTORY_GROUP
from iapdeploy.exceptions import RenderError
from iapdeploy.models.inventory import HostEntry, InventoryDocument
from iapdeploy.models.request import ResolvedConfig
from iapdeploy.services.tunnel_service import build_iap_tunnel_command

SAFE_IDENTIFIER = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._@-]*$")

SHELL_METACHARACTERS = set(";&|`$()<>\\'\"*?[]{}!#~%^= \t\r\n")

# Fields placed into the proxy command or ssh arguments
INTERPOLATED_FIELDS = (
    "target_vm",
    "project_id",
    "vm_zone",
    "ansible_user",
    "service_account",
)


class InventoryRenderer:
    """Renders a single-host inventory from a ResolvedConfig."""

    def __init__(self, interpreter: str = ANSIBLE_INTERPRETER):
        self.interpreter = interpreter

    def render(self, config: ResolvedConfig) -> InventoryDocument:
        """
        Render the inventory for a config.

        The host key file is the secret reference until the driver binds
        the fetched key with InventoryDocument.bind_key_file().

        Args:
            config: Resolved deployment config

        Returns:
            InventoryDocument with one group holding the target VM

        Raises:
            RenderError: If a field headed for the proxy command is unsafe
        """
        for name in INTERPOLATED_FIELDS:
            self._check_identifier(name, getattr(config, name))

        entry = HostEntry(
            address=config.target_vm,
            user=config.ansible_user,
            proxy_command=tuple(build_iap_tunnel_command(config)),
            key_file=config.credential_ref,
            interpreter=self.interpreter,
        )

        return InventoryDocument(
            groups={ANSIBLE_INVENTORY_GROUP: {config.target_vm: entry}}
        )

    def _check_identifier(self, name: str, value: str) -> None:
        """Reject anything that is not a plain identifier."""
        if name == "service_account" and not value:
            return

        bad = sorted({ch for ch in value if ch in SHELL_METACHARACTERS})
        if bad:
            raise RenderError(
                name, value, f"contains shell metacharacters {' '.join(repr(c) for c in bad)}"
            )

        if not SAFE_IDENTIFIER.match(value):
            raise RenderError(name, value, "is not a valid identifier")
