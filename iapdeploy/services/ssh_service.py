"""SSH service: one-off commands on the VM through the tunnel endpoint."""

import shlex
import subprocess
import time
from typing import Optional

from iapdeploy.models.results import SSHResult
from iapdeploy.models.ssh import TunnelEndpoint


class SSHService:
    """Runs remote commands over `ssh` against a TunnelEndpoint."""

    def __init__(self, endpoint: TunnelEndpoint, logger=None):
        self.endpoint = endpoint
        self.logger = logger

    def execute_command(self, command: str, timeout: Optional[float] = 30) -> SSHResult:
        """
        Run command on the VM.

        Args:
            command: Remote shell command
            timeout: Seconds before giving up

        Returns:
            SSHResult (a non-zero exit is not an exception)

        Raises:
            TimeoutError: The command did not finish in time
        """
        argv = self.endpoint.ssh_argv(command)
        if self.logger:
            self.logger.log_command(shlex.join(argv))

        started = time.monotonic()
        try:
            completed = subprocess.run(argv, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            raise TimeoutError(
                f"'{command}' on {self.endpoint.address} timed out after {timeout}s"
            )

        return SSHResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            host=self.endpoint.address,
            command=command,
            duration_seconds=time.monotonic() - started,
        )
