"""IAP tunnel service: builds tunnel commands and manages the tunnel process."""

import shlex
import socket
import subprocess
import tempfile
import time
from typing import IO, Optional

from iapdeploy.constants import (
    SSH_REMOTE_PORT,
    TUNNEL_LOCAL_HOST,
    TUNNEL_POLL_INTERVAL,
)
from iapdeploy.exceptions import TunnelError
from iapdeploy.models.request import ResolvedConfig


def build_iap_tunnel_command(
    config: ResolvedConfig, local_port: Optional[int] = None
) -> list[str]:
    """
    Build the `gcloud compute start-iap-tunnel` argv for a config.

    Used both for the inventory ProxyCommand (stdin mode, local_port=None)
    and for the driver's own tunnel, so both always reach the same VM.

    Args:
        config: Resolved deployment config
        local_port: Local port to listen on; None listens on stdin

    Returns:
        Command as an argument list
    """
    cmd = [
        "gcloud",
        "compute",
        "start-iap-tunnel",
        config.target_vm,
        str(SSH_REMOTE_PORT),
    ]

    if local_port is None:
        cmd.append("--listen-on-stdin")
    else:
        cmd.append(f"--local-host-port={TUNNEL_LOCAL_HOST}:{local_port}")

    cmd.extend([f"--project={config.project_id}", f"--zone={config.vm_zone}"])

    if config.service_account:
        cmd.append(f"--impersonate-service-account={config.service_account}")

    cmd.append("--verbosity=warning")
    return cmd


def find_free_port() -> int:
    """Ask the OS for a free local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class IAPTunnel:
    """
    IAP tunnel to port 22 of the target VM, exposed on a local port.

    Use as a context manager: entering blocks until the local port accepts
    connections or the timeout elapses; exiting always stops the tunnel.
    """

    def __init__(self, config: ResolvedConfig, logger=None, timeout: Optional[float] = None):
        """
        Initialize tunnel.

        Args:
            config: Resolved deployment config
            logger: DeployLogger instance (optional)
            timeout: Seconds to wait for readiness (default: config.tunnel_timeout)
        """
        self.config = config
        self.logger = logger
        self.timeout = timeout if timeout is not None else config.tunnel_timeout
        self.local_port: Optional[int] = None
        self.process: Optional[subprocess.Popen] = None
        self.stderr_file: Optional[IO[bytes]] = None

    def open(self) -> "IAPTunnel":
        """
        Start the tunnel and wait until it is ready.

        Raises:
            TunnelError: If the tunnel exits early or is not ready in time
        """
        self.local_port = find_free_port()
        cmd = build_iap_tunnel_command(self.config, self.local_port)

        if self.logger:
            self.logger.log_command(shlex.join(cmd))

        # gcloud may warn for as long as the tunnel is up; a file never fills
        self.stderr_file = tempfile.TemporaryFile()
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=self.stderr_file,
            )
        except OSError as e:
            self._close_stderr()
            raise TunnelError("Could not start gcloud IAP tunnel", context=str(e))

        try:
            self._wait_ready()
        except BaseException:
            self.close()
            raise

        if self.logger:
            self.logger.log(
                f"Tunnel ready: {TUNNEL_LOCAL_HOST}:{self.local_port} -> "
                f"{self.config.target_vm}:{SSH_REMOTE_PORT}",
                "INFO",
            )
        return self

    def _wait_ready(self) -> None:
        deadline = time.monotonic() + self.timeout

        while True:
            returncode = self.process.poll()
            if returncode is not None:
                raise TunnelError(
                    f"IAP tunnel exited with code {returncode}",
                    context=self.read_stderr().strip() or None,
                )

            try:
                with socket.create_connection(
                    (TUNNEL_LOCAL_HOST, self.local_port), timeout=1
                ):
                    return
            except OSError:
                pass

            if time.monotonic() >= deadline:
                raise TunnelError(
                    f"IAP tunnel to '{self.config.target_vm}' not ready within {self.timeout:.0f}s",
                    context=f"Project: {self.config.project_id}, Zone: {self.config.vm_zone}",
                )

            time.sleep(TUNNEL_POLL_INTERVAL)

    def read_stderr(self) -> str:
        """Everything gcloud wrote to stderr so far."""
        if self.stderr_file is None:
            return ""
        self.stderr_file.seek(0)
        return self.stderr_file.read().decode("utf-8", errors="replace")

    def _close_stderr(self) -> None:
        if self.stderr_file is not None:
            self.stderr_file.close()
            self.stderr_file = None

    def close(self) -> None:
        """Stop the tunnel process if it is still running."""
        if self.process is None:
            self._close_stderr()
            return

        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()

        if self.logger:
            self.logger.log_output(self.read_stderr(), "gcloud")
            self.logger.log("Tunnel closed", "INFO")
        self._close_stderr()
        self.process = None

    def __enter__(self) -> "IAPTunnel":
        return self.open()

    def __exit__(self, exc_type, exc_val, _exc_tb):
        self.close()
        return False
