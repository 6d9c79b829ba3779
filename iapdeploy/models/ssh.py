"""
SSH Models

Where ad-hoc SSH commands go: the local end of the IAP tunnel.
"""

from dataclasses import dataclass

from iapdeploy.constants import TUNNEL_LOCAL_HOST

# Host keys of tunnelled VMs change on every re-image
SSH_OPTIONS = (
    "StrictHostKeyChecking=no",
    "UserKnownHostsFile=/dev/null",
    "LogLevel=ERROR",
    "ConnectTimeout=10",
    "BatchMode=yes",
)


@dataclass(frozen=True)
class TunnelEndpoint:
    """User, key and local port for SSH through an open tunnel."""

    user: str
    key_file: str
    port: int
    host: str = TUNNEL_LOCAL_HOST

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def ssh_argv(self, remote_command: str) -> list[str]:
        """ssh argv running remote_command on the VM."""
        argv = ["ssh", "-i", self.key_file, "-p", str(self.port)]
        for option in SSH_OPTIONS:
            argv.extend(["-o", option])
        argv.extend([f"{self.user}@{self.host}", remote_command])
        return argv
