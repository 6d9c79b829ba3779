"""
Deployment Request Models

Dataclass models for the caller's request and its resolved form.
"""

from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class DeploymentRequest:
    """Caller-supplied parameters. Any field left as None takes its default."""

    project_id: Optional[str] = None
    target_vm: Optional[str] = None
    vm_zone: Optional[str] = None
    playbook: Optional[str] = None
    git_repo: Optional[str] = None
    git_branch: Optional[str] = None
    ansible_user: Optional[str] = None
    service_account: Optional[str] = None
    ssh_key_secret: Optional[str] = None
    skip_validation: Optional[bool] = None

    @classmethod
    def field_names(cls) -> list[str]:
        """Names of all request fields, in declaration order."""
        return [f.name for f in fields(cls)]

    def overrides(self) -> Dict[str, Any]:
        """Fields the caller actually set."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class ResolvedConfig:
    """
    Fully resolved configuration for a single run.

    Constructed once by ParameterResolver and passed explicitly through
    every stage. Required fields are never empty.
    """

    project_id: str
    target_vm: str
    vm_zone: str
    playbook: str
    git_branch: str
    ansible_user: str
    ssh_key_secret: str
    git_repo: str = ""
    service_account: str = ""
    skip_validation: bool = False
    strict_validation: bool = False
    tunnel_timeout: float = 60
    playbook_timeout: float = 3600
    playbook_dir: Path = field(default_factory=Path.cwd)
    extra_vars: Dict[str, str] = field(default_factory=dict)

    REQUIRED_FIELDS = (
        "project_id",
        "target_vm",
        "vm_zone",
        "playbook",
        "git_branch",
        "ansible_user",
        "ssh_key_secret",
    )

    @property
    def host_key(self) -> str:
        """Identifier used to serialize runs against the same VM."""
        return f"{self.project_id}/{self.vm_zone}/{self.target_vm}"

    @property
    def credential_ref(self) -> str:
        """Secret Manager reference for the SSH key."""
        return f"projects/{self.project_id}/secrets/{self.ssh_key_secret}"

    def summary(self) -> Dict[str, str]:
        """Short key/value view for headers and logs."""
        details = {
            "Project": self.project_id,
            "VM": self.target_vm,
            "Zone": self.vm_zone,
            "Playbook": self.playbook,
            "User": self.ansible_user,
        }
        if self.git_repo:
            details["Source"] = f"{self.git_repo}@{self.git_branch}"
        if self.service_account:
            details["Impersonate"] = self.service_account
        return details

    def __repr__(self) -> str:
        return f"ResolvedConfig(host={self.host_key}, playbook={self.playbook})"
