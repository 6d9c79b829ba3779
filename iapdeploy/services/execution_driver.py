"""
Execution Driver

Runs one deployment: credential, tunnel, playbook, validation, in that
order, with every resource released on every exit path.
"""

import os
import subprocess
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterable, Iterator

from iapdeploy.ansible_runner import AnsibleRunner, PlaybookRun, build_playbook_command
from iapdeploy.constants import DEFAULT_LOCK_TIMEOUT
from iapdeploy.exceptions import (
    IapDeployError,
    PlaybookError,
    SourceError,
    StateError,
    ValidationMismatch,
)
from iapdeploy.logger import run_with_progress
from iapdeploy.models.inventory import InventoryDocument
from iapdeploy.models.request import ResolvedConfig
from iapdeploy.models.results import (
    ExecutionResult,
    RunState,
    RunStatus,
    ValidationReport,
)
from iapdeploy.models.ssh import TunnelEndpoint
from iapdeploy.services.host_lock import HostLock
from iapdeploy.services.secret_service import SecretService
from iapdeploy.services.ssh_service import SSHService
from iapdeploy.services.tunnel_service import IAPTunnel
from iapdeploy.services.validation_service import ValidationService

GIT_CLONE_TIMEOUT = 300

ALLOWED_TRANSITIONS = {
    RunState.IDLE: {RunState.CREDENTIAL_FETCHED, RunState.FAILED},
    RunState.CREDENTIAL_FETCHED: {RunState.TUNNEL_ESTABLISHED, RunState.FAILED},
    RunState.TUNNEL_ESTABLISHED: {RunState.PLAYBOOK_RUNNING, RunState.FAILED},
    RunState.PLAYBOOK_RUNNING: {RunState.SUCCEEDED, RunState.FAILED},
    RunState.SUCCEEDED: {RunState.VALIDATION_RUNNING, RunState.REPORTED},
    RunState.FAILED: {RunState.REPORTED},
    RunState.VALIDATION_RUNNING: {RunState.REPORTED},
    RunState.REPORTED: set(),
}


class RunStateMachine:
    """Single-shot run state; no state is ever entered twice."""

    def __init__(self):
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]

    def advance(self, new_state: RunState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state] or new_state in self.history:
            raise StateError(
                f"Illegal transition {self.state.value} -> {new_state.value}",
                context=" -> ".join(s.value for s in self.history),
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self) -> None:
        """Move to FAILED then REPORTED from wherever the run stopped."""
        if RunState.FAILED in ALLOWED_TRANSITIONS[self.state]:
            self.advance(RunState.FAILED)
        if RunState.REPORTED in ALLOWED_TRANSITIONS[self.state]:
            self.advance(RunState.REPORTED)


class ExecutionDriver:
    """
    Drives a single deployment run.

    Responsibilities:
    - Serialize runs per target host
    - Materialize the playbook source and SSH key in a private workspace
    - Hold the IAP tunnel open while the playbook and checks run
    - Turn outcomes into an ExecutionResult or a stage-tagged error
    """

    def __init__(
        self,
        logger,
        secret_service: Optional[SecretService] = None,
        runner: Optional[AnsibleRunner] = None,
        tunnel_factory=IAPTunnel,
        workdir_root: Optional[Path] = None,
        lock_dir: Optional[Path] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        validation_components: Optional[Iterable[tuple[str, str]]] = None,
        verbose: bool = False,
    ):
        """
        Initialize execution driver.

        Args:
            logger: DeployLogger instance
            secret_service: Secret Manager access (default: SecretService)
            runner: Playbook runner (default: AnsibleRunner)
            tunnel_factory: Callable (config, logger) -> tunnel context manager
            workdir_root: Parent for the per-run temp workspace (default: system temp)
            lock_dir: Directory for per-host lock files
            lock_timeout: Seconds to wait for a busy host
            validation_components: (name, command) pairs to check
            verbose: Echo raw playbook output
        """
        self.logger = logger
        self.secret_service = secret_service or SecretService(logger=logger)
        self.runner = runner or AnsibleRunner(logger, verbose=verbose)
        self.tunnel_factory = tunnel_factory
        self.workdir_root = workdir_root
        self.lock_dir = lock_dir
        self.lock_timeout = lock_timeout
        self.validation_components = validation_components

    def run(self, config: ResolvedConfig, inventory: InventoryDocument) -> ExecutionResult:
        """
        Execute the deployment.

        Args:
            config: Resolved deployment config
            inventory: Rendered inventory (key file still unbound)

        Returns:
            ExecutionResult with status succeeded

        Raises:
            PlaybookError: Playbook exited non-zero (carries partial result)
            ValidationMismatch: Strict mode and a component is missing
            IapDeployError: Any other stage failure
        """
        start = time.monotonic()
        machine = RunStateMachine()

        try:
            with HostLock(config.host_key, self.lock_dir, self.lock_timeout):
                with self._workspace() as workdir:
                    result = self._run_stages(config, inventory, workdir, machine, start)
        except PlaybookError:
            raise
        except IapDeployError as e:
            machine.fail()
            self.logger.log(f"Run failed in stage {e.stage}: {e.message}", "ERROR")
            raise

        if config.strict_validation and result.validation and result.validation.missing:
            failed = ExecutionResult(
                status=RunStatus.FAILED,
                exit_code=1,
                duration=result.duration,
                log_path=result.log_path,
                validation=result.validation,
                states=result.states,
            )
            raise ValidationMismatch(result.validation.missing, failed)

        return result

    def validate(self, config: ResolvedConfig) -> ValidationReport:
        """Run only the component checks against an already configured VM."""
        with HostLock(config.host_key, self.lock_dir, self.lock_timeout):
            with self._workspace() as workdir:
                self.logger.step("Fetching SSH key")
                with self.secret_service.ssh_key_file(config, workdir) as key_path:
                    self.logger.step("Opening IAP tunnel")
                    with self.tunnel_factory(config, self.logger) as tunnel:
                        self.logger.step("Validating components")
                        return self._validate(config, key_path, tunnel.local_port)

    def _run_stages(
        self,
        config: ResolvedConfig,
        inventory: InventoryDocument,
        workdir: Path,
        machine: RunStateMachine,
        start: float,
    ) -> ExecutionResult:
        self.logger.step("Preparing playbook")
        playbook_path = self._prepare_playbook(config, workdir)
        self.logger.success(f"Playbook: {playbook_path}")

        self.logger.step("Fetching SSH key")
        with self.secret_service.ssh_key_file(config, workdir) as key_path:
            machine.advance(RunState.CREDENTIAL_FETCHED)
            self.logger.success(f"Key from secret '{config.ssh_key_secret}'")

            inventory_path = self._write_inventory(
                inventory.bind_key_file(str(key_path)), workdir
            )

            self.logger.step(f"Opening IAP tunnel to {config.target_vm}")
            with self.tunnel_factory(config, self.logger) as tunnel:
                machine.advance(RunState.TUNNEL_ESTABLISHED)
                self.logger.success(f"Tunnel ready on port {tunnel.local_port}")

                self.logger.step(f"Running {config.playbook}")
                machine.advance(RunState.PLAYBOOK_RUNNING)
                cmd = build_playbook_command(inventory_path, playbook_path, config.extra_vars)
                try:
                    run = self.runner.run(
                        cmd, cwd=playbook_path.parent, timeout=config.playbook_timeout
                    )
                except PlaybookError as e:
                    run = PlaybookRun(returncode=e.exit_code, tail=tuple(e.tail))

                if not run.is_success:
                    machine.fail()
                    result = self._result(
                        RunStatus.FAILED, run.returncode, start, machine, run.tail
                    )
                    error = PlaybookError(run.returncode, list(run.tail), result)
                    self.logger.log(f"Run failed in stage {error.stage}: {error.message}", "ERROR")
                    raise error

                machine.advance(RunState.SUCCEEDED)
                self.logger.success("Playbook completed")

                validation = None
                if config.skip_validation:
                    self.logger.log("Validation skipped", "INFO")
                else:
                    self.logger.step("Validating components")
                    machine.advance(RunState.VALIDATION_RUNNING)
                    validation = self._validate(config, key_path, tunnel.local_port)

                machine.advance(RunState.REPORTED)
                return self._result(
                    RunStatus.SUCCEEDED, 0, start, machine, run.tail, validation
                )

    @contextmanager
    def _workspace(self) -> Iterator[Path]:
        """Owner-only temp directory for the run, removed on exit."""
        if self.workdir_root:
            Path(self.workdir_root).mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(
            prefix="iapdeploy-", dir=str(self.workdir_root) if self.workdir_root else None
        ) as name:
            path = Path(name)
            os.chmod(path, 0o700)
            yield path

    def _prepare_playbook(self, config: ResolvedConfig, workdir: Path) -> Path:
        """Resolve the playbook, cloning its repository first if configured."""
        if config.git_repo:
            base = workdir / "source"
            cmd = [
                "git",
                "clone",
                "--depth",
                "1",
                "--branch",
                config.git_branch,
                "--",
                config.git_repo,
                str(base),
            ]
            try:
                returncode, _, stderr = run_with_progress(
                    self.logger, cmd, "Cloning playbook repository", timeout=GIT_CLONE_TIMEOUT
                )
            except subprocess.TimeoutExpired:
                raise SourceError(
                    f"git clone timed out after {GIT_CLONE_TIMEOUT}s",
                    context=config.git_repo,
                )
            except OSError as e:
                raise SourceError("Could not run git", context=str(e))

            if returncode != 0:
                raise SourceError(
                    f"Could not clone {config.git_repo}@{config.git_branch}",
                    context=stderr.strip() or None,
                )
        else:
            base = Path(config.playbook_dir)

        playbook_path = (base / config.playbook).resolve()
        if not playbook_path.is_file():
            raise SourceError(
                f"Playbook '{config.playbook}' not found", context=f"Looked in: {base}"
            )
        return playbook_path

    def _write_inventory(self, inventory: InventoryDocument, workdir: Path) -> Path:
        inventory_path = workdir / "inventory.yml"
        fd = os.open(inventory_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(inventory.to_yaml())
        self.logger.log(f"Inventory written: {inventory_path}", "DEBUG")
        return inventory_path

    def _validate(self, config: ResolvedConfig, key_path: Path, port: int) -> ValidationReport:
        endpoint = TunnelEndpoint(user=config.ansible_user, key_file=str(key_path), port=port)
        service = ValidationService(
            SSHService(endpoint, logger=self.logger),
            components=self.validation_components,
            logger=self.logger,
        )
        return service.run()

    def _result(
        self,
        status: RunStatus,
        exit_code: int,
        start: float,
        machine: RunStateMachine,
        tail: Iterable[str] = (),
        validation: Optional[ValidationReport] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            status=status,
            exit_code=exit_code,
            duration=time.monotonic() - start,
            log_path=str(self.logger.log_path) if self.logger.log_path else None,
            output_tail=tuple(tail),
            validation=validation,
            states=tuple(machine.history),
        )
