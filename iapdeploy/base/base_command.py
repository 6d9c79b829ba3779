"""
Base Command Class

Every CLI command is a BaseCommand subclass: execute() holds the command's
logic, run() turns its outcome into console/JSON output and an exit code.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from rich.console import Console

from iapdeploy.exceptions import IapDeployError, PlaybookError, ValidationMismatch
from iapdeploy.logger import DeployLogger
from iapdeploy.ui_components import show_header

# Exit code for Ctrl-C, as a shell reports SIGINT
EXIT_INTERRUPTED = 130

MESSAGE_FORMATS = {
    "success": "[green]✓ {}[/green]",
    "error": "[red]✗ {}[/red]",
    "dim": "[dim]{}[/dim]",
}


class BaseCommand(ABC):
    """
    Abstract base command.

    Subclasses implement execute(); callers invoke run().
    """

    def __init__(
        self,
        verbose: bool = False,
        json_output: bool = False,
        log_root: Optional[Path] = None,
    ):
        self.verbose = verbose
        self.json_output = json_output
        self.log_root = log_root
        self.console = Console()
        self.logger: Optional[DeployLogger] = None

    def init_logger(self, target: str, operation: str) -> DeployLogger:
        """Open the run log for target; console output is muted in JSON mode."""
        self.logger = DeployLogger(
            target,
            operation,
            verbose=self.verbose,
            log_root=self.log_root,
            quiet=self.json_output,
        )
        return self.logger

    def say(self, kind: str, message: str) -> None:
        """Console message of kind success/error/dim (dropped in JSON mode)."""
        if not self.json_output:
            self.console.print(MESSAGE_FORMATS[kind].format(message), highlight=False)

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        details: Optional[Dict[str, str]] = None,
    ) -> None:
        if self.verbose or self.json_output:
            return
        show_header(title=title, subtitle=subtitle, details=details, console=self.console)

    def emit_json(self, data: Dict[str, Any], exit_code: int = 0) -> None:
        """Print data as JSON; a non-zero exit_code ends the process."""
        print(json.dumps(data, indent=2))
        if exit_code:
            raise SystemExit(exit_code)

    def fail(self, message: str, code: int = 1) -> NoReturn:
        self.say("error", message)
        raise SystemExit(code)

    @staticmethod
    def exit_code_for(error: IapDeployError) -> int:
        """ansible-playbook's own exit code for playbook failures, else 1.

        A playbook killed by signal N reports 128 + N, as a shell would.
        """
        if isinstance(error, PlaybookError) and error.exit_code:
            if error.exit_code < 0:
                return 128 - error.exit_code
            return error.exit_code
        return 1

    def _error_payload(self, error: IapDeployError) -> Dict[str, Any]:
        result = getattr(error, "result", None)
        if isinstance(error, (PlaybookError, ValidationMismatch)) and result is not None:
            payload = result.to_report()
            payload["error"] = error.message
            return payload
        return {
            "error": error.message,
            "details": {"stage": error.stage, "context": error.context},
        }

    def _report(self, error: IapDeployError) -> None:
        context = f"Stage: {error.stage}"
        if error.context:
            context += f"\n{error.context}"

        if self.logger:
            self.logger.log_error(error.message, context=context)
        else:
            self.say("error", error.message)
            self.say("dim", context)

    def _point_at_log(self) -> None:
        if self.logger and not self.json_output:
            self.console.print(f"\n[dim]Logs saved to:[/dim] {self.logger.log_path}\n")

    @abstractmethod
    def execute(self) -> None:
        """Command logic."""

    def run(self) -> None:
        """Execute and map the outcome to output and an exit code."""
        try:
            self.execute()
        except SystemExit:
            raise
        except KeyboardInterrupt:
            self.say("dim", "Cancelled")
            if self.logger:
                self.logger.log_error("Cancelled by user")
            self._point_at_log()
            raise SystemExit(EXIT_INTERRUPTED)
        except IapDeployError as e:
            code = self.exit_code_for(e)
            self._report(e)
            if self.json_output:
                self.emit_json(self._error_payload(e), exit_code=code)
            self._point_at_log()
            raise SystemExit(code)
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            if self.logger:
                self.logger.log_error(message)
            else:
                self.say("error", message)
            if self.json_output:
                self.emit_json({"error": message}, exit_code=1)
            self._point_at_log()
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
