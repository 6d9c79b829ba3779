"""
Ansible Runner

Executes ansible-playbook with streamed output, logging and a hard timeout.
"""

import os
import selectors
import shlex
import subprocess
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict

from rich.console import Console
from rich.text import Text

from iapdeploy.constants import ANSIBLE_PLAYBOOK_BIN, PLAYBOOK_TAIL_LINES
from iapdeploy.exceptions import PlaybookError

# Exit code reported when the playbook is killed for running too long
TIMEOUT_EXIT_CODE = 124

# Exit code reported when ansible-playbook cannot be started, as a shell would
COMMAND_NOT_FOUND_EXIT_CODE = 127

READ_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class PlaybookRun:
    """Outcome of one ansible-playbook process."""

    returncode: int
    tail: tuple[str, ...] = ()
    timed_out: bool = False

    @property
    def is_success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def build_playbook_command(
    inventory_path: Path,
    playbook_path: Path,
    extra_vars: Optional[Dict[str, str]] = None,
) -> list[str]:
    """Build the ansible-playbook argv."""
    cmd = [ANSIBLE_PLAYBOOK_BIN, "-i", str(inventory_path), str(playbook_path)]
    for key, value in sorted((extra_vars or {}).items()):
        cmd.extend(["-e", f"{key}={value}"])
    return cmd


class AnsibleRunner:
    """
    Run ansible-playbook and stream its output.

    Responsibilities:
    - Execute the playbook without a shell
    - Stream every line to the log as it arrives
    - Keep the last lines for error reports
    - Kill the process on timeout or cancellation
    """

    def __init__(self, logger, verbose: bool = False, tail_lines: int = PLAYBOOK_TAIL_LINES):
        """
        Initialize Ansible runner.

        Args:
            logger: DeployLogger instance for logging
            verbose: Whether to echo raw output to the console
            tail_lines: Number of trailing lines kept for reports
        """
        self.logger = logger
        self.verbose = verbose
        self.tail_lines = tail_lines
        self.console = Console()

    def run(self, cmd: list[str], cwd: Path, timeout: Optional[float] = None) -> PlaybookRun:
        """
        Run an ansible-playbook command.

        Args:
            cmd: Command argv
            cwd: Working directory for execution
            timeout: Seconds before the process is killed (None: no limit)

        Returns:
            PlaybookRun with exit code and output tail

        Raises:
            PlaybookError: ansible-playbook could not be started
        """
        self.logger.log_command(shlex.join(cmd))
        self.logger.log(f"Ansible detailed log: {self.logger.ansible_log_path}", "INFO")

        try:
            process = subprocess.Popen(
                cmd,
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
                env=self._build_environment(self.logger.ansible_log_path),
            )
        except OSError as e:
            raise PlaybookError(COMMAND_NOT_FOUND_EXIT_CODE, [f"Could not start {cmd[0]}: {e}"])

        tail: deque = deque(maxlen=self.tail_lines)
        deadline = time.monotonic() + timeout if timeout else None
        timed_out = False
        pending = b""
        fd = process.stdout.fileno()

        sel = selectors.DefaultSelector()
        sel.register(process.stdout, selectors.EVENT_READ)

        try:
            while True:
                if deadline and time.monotonic() >= deadline:
                    timed_out = True
                    self.logger.log(f"ansible-playbook exceeded {timeout:.0f}s, killing", "ERROR")
                    break

                if sel.select(timeout=0.1):
                    # Never blocks once select reported the pipe readable
                    chunk = os.read(fd, READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    *lines, pending = (pending + chunk).split(b"\n")
                    for raw in lines:
                        self._handle_line(self._decode(raw), tail)
                elif process.poll() is not None:
                    break

            if pending:
                self._handle_line(self._decode(pending), tail)
        finally:
            sel.close()
            if process.poll() is None:
                process.kill()
            process.wait()
            process.stdout.close()

        if timed_out:
            return PlaybookRun(returncode=TIMEOUT_EXIT_CODE, tail=tuple(tail), timed_out=True)
        return PlaybookRun(returncode=process.returncode, tail=tuple(tail))

    @staticmethod
    def _decode(raw: bytes) -> str:
        return raw.decode("utf-8", errors="replace").rstrip()

    def _build_environment(self, log_path: Path) -> dict:
        """
        Build environment variables for Ansible execution.

        Args:
            log_path: Path to Ansible log file

        Returns:
            Dictionary of environment variables
        """
        env = os.environ.copy()
        env.update(
            {
                "PYTHONUNBUFFERED": "1",
                "ANSIBLE_STDOUT_CALLBACK": "default",
                "ANSIBLE_CALLBACKS_ENABLED": "profile_tasks",
                "ANSIBLE_HOST_KEY_CHECKING": "False",
                "ANSIBLE_RETRY_FILES_ENABLED": "False",
                "ANSIBLE_FORCE_COLOR": "true" if self.verbose else "false",
                "ANSIBLE_LOG_PATH": str(log_path),
            }
        )
        return env

    def _handle_line(self, line: str, tail: deque) -> None:
        tail.append(line)

        try:
            self.logger.log_output(line, "ansible")
        except (BlockingIOError, OSError):
            pass

        if self.logger.quiet:
            return

        if self.verbose:
            self.console.print(Text(line))
            return

        # Condensed console view: task headers, failures and the recap
        if line.startswith(("TASK [", "PLAY [", "RUNNING HANDLER [")):
            self.console.print(Text(f"  {line.rstrip(' *')}", style="dim"))
        elif line.startswith(("fatal:", "failed:", "ERROR!")):
            self.console.print(Text(f"  {line}", style="red"))
        elif line.startswith("PLAY RECAP"):
            self.console.print(Text(f"  {line.rstrip(' *')}", style="bold"))
