"""
Inventory Models

Dataclass models for the host inventory handed to ansible-playbook.
"""

import shlex
from dataclasses import dataclass, field, replace
from typing import Dict, Any

import yaml


@dataclass(frozen=True)
class HostEntry:
    """Connection attributes for one target host."""

    address: str
    user: str
    proxy_command: tuple[str, ...]
    key_file: str
    interpreter: str

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping form (proxy command kept as an argv list)."""
        return {
            "address": self.address,
            "user": self.user,
            "proxy_command": list(self.proxy_command),
            "key_file": self.key_file,
            "interpreter": self.interpreter,
        }

    def to_ansible(self) -> Dict[str, str]:
        """Ansible host variables for this entry."""
        proxy = shlex.join(self.proxy_command)
        return {
            "ansible_host": self.address,
            "ansible_user": self.user,
            "ansible_ssh_private_key_file": self.key_file,
            "ansible_ssh_common_args": (
                f"-o ProxyCommand={shlex.quote(proxy)} "
                "-o StrictHostKeyChecking=no "
                "-o UserKnownHostsFile=/dev/null"
            ),
            "ansible_python_interpreter": self.interpreter,
        }


@dataclass(frozen=True)
class InventoryDocument:
    """Mapping of group name to its hosts."""

    groups: Dict[str, Dict[str, HostEntry]] = field(default_factory=dict)

    @property
    def hosts(self) -> Dict[str, HostEntry]:
        """All hosts across groups."""
        merged: Dict[str, HostEntry] = {}
        for group_hosts in self.groups.values():
            merged.update(group_hosts)
        return merged

    def bind_key_file(self, key_file: str) -> "InventoryDocument":
        """
        Return a copy with every host pointing at a concrete key file.

        The renderer only knows the secret reference; the driver binds the
        temp file path once the credential has been fetched.
        """
        groups = {
            name: {
                host_id: replace(entry, key_file=key_file)
                for host_id, entry in group_hosts.items()
            }
            for name, group_hosts in self.groups.items()
        }
        return InventoryDocument(groups=groups)

    def to_dict(self) -> Dict[str, Any]:
        """Mapping form: {group: {"hosts": {host_id: {...}}}}."""
        return {
            name: {
                "hosts": {
                    host_id: entry.to_dict()
                    for host_id, entry in sorted(group_hosts.items())
                }
            }
            for name, group_hosts in sorted(self.groups.items())
        }

    def to_ansible(self) -> Dict[str, Any]:
        """Ansible YAML inventory structure."""
        return {
            name: {
                "hosts": {
                    host_id: entry.to_ansible()
                    for host_id, entry in sorted(group_hosts.items())
                }
            }
            for name, group_hosts in sorted(self.groups.items())
        }

    def to_yaml(self, ansible: bool = True) -> str:
        """Serialize to YAML (Ansible form by default)."""
        data = self.to_ansible() if ansible else self.to_dict()
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=True)

    def __repr__(self) -> str:
        return f"InventoryDocument(groups={sorted(self.groups)}, hosts={sorted(self.hosts)})"
