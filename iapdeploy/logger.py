"""
Run logging for iapdeploy

Every operation gets its own log file; the console shows a condensed view
unless verbose output is requested, and nothing at all in JSON mode.
"""

import os
import re
import shlex
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, TextIO

from rich.console import Console

from iapdeploy.constants import DEFAULT_LOG_ROOT, LOG_DATE_FORMAT, LOG_TIME_FORMAT

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

RULE_WIDTH = 80

# Console style per level when verbose
LEVEL_STYLES = {
    "ERROR": "red",
    "WARNING": "yellow",
    "DEBUG": "dim",
}


class DeployLogger:
    """
    Log sink for one operation against one target VM.

    File layout: <log_root>/<target>/<YYYY-MM-DD>/<HH-MM-SS>_<operation>.log,
    with ansible-playbook's own log written next to it.
    """

    def __init__(
        self,
        target: str,
        operation: str,
        verbose: bool = False,
        log_root: Optional[Path] = None,
        quiet: bool = False,
    ):
        """
        Args:
            target: Target VM name (groups the log directory)
            operation: Operation name (deploy, validate, ...)
            verbose: Mirror every log line on the console
            log_root: Root logs directory (default: ~/.iapdeploy/logs)
            quiet: Never write to the console (JSON mode)
        """
        self.target = target
        self.operation = operation
        self.verbose = verbose
        self.quiet = quiet
        self.failed = False
        self._step_count = 0

        started = datetime.now()
        run_dir = (
            Path(log_root or DEFAULT_LOG_ROOT).expanduser()
            / target
            / started.strftime(LOG_DATE_FORMAT)
        )
        run_dir.mkdir(parents=True, exist_ok=True)
        self.log_path: Path = run_dir / f"{started.strftime(LOG_TIME_FORMAT)}_{operation}.log"

        # Line buffered so the file can be tailed during a run
        self.log_file: Optional[TextIO] = open(self.log_path, "a", buffering=1)
        self._write_block(
            "iapdeploy",
            [
                f"Target: {target}",
                f"Operation: {operation}",
                f"PID: {os.getpid()}",
                f"Started: {started.isoformat()}",
            ],
            rule="=",
        )

    @property
    def ansible_log_path(self) -> Path:
        """Raw ansible-playbook log next to the main log."""
        return self.log_path.with_name(f"{self.log_path.stem}_ansible.log")

    def _print(self, *args, **kwargs) -> None:
        if not self.quiet:
            console.print(*args, **kwargs)

    def _write(self, text: str) -> None:
        if self.log_file:
            self.log_file.write(text)

    def _write_block(self, title: str, lines: Iterable[str], rule: str) -> None:
        bar = rule * RULE_WIDTH
        body = "\n".join(lines)
        self._write(f"\n{bar}\n{title}\n{bar}\n{body}\n{bar}\n\n")

    def log(self, message: str, level: str = "INFO") -> None:
        """Append a timestamped line; echo it when verbose."""
        self._write(f"[{datetime.now():%H:%M:%S}] [{level}] {message}\n")

        if self.verbose:
            self._print(message, style=LEVEL_STYLES.get(level), markup=False, highlight=False)

    def log_command(self, command: str) -> None:
        self.log(f"$ {command}", "DEBUG")

    def log_output(self, output: str, stream: str = "stdout") -> None:
        """
        Record subprocess output, ANSI codes stripped.

        Args:
            output: One or more lines of output
            stream: Label for the source (stdout, stderr, ansible)
        """
        if not output:
            return

        try:
            for line in ANSI_ESCAPE.sub("", output).splitlines():
                self._write(f"  [{stream}] {line}\n")
        except OSError:
            # A full disk must not take the run down with it
            pass

        if self.verbose:
            self._print(output, markup=False, highlight=False)

    def log_error(self, error: str, context: Optional[str] = None) -> None:
        """Write an error block and show the error on the console."""
        self.failed = True

        lines = [error]
        if context:
            lines.append(f"Context: {context}")
        self._write_block("ERROR", lines, rule="!")

        self._print()
        self._print(f"[bold red]✗ {error}[/bold red]", highlight=False)
        if context:
            self._print(f"  [color(208)]{context}[/color(208)]", highlight=False)

    def step(self, name: str) -> None:
        """Mark the start of a run stage."""
        self._step_count += 1
        self.log(f"Step {self._step_count}: {name}")

        if not self.verbose:
            if self._step_count > 1:
                self._print()
            self._print(f"[color(214)]▶[/color(214)] [white]{name}[/white]")

    def success(self, message: str) -> None:
        self.log(message)
        if not self.verbose:
            self._print(f"  [dim]✓ {message}[/dim]")

    def warning(self, message: str) -> None:
        self.log(message, "WARNING")
        if not self.verbose:
            self._print(f"  [yellow]⚠[/yellow] [dim]{message}[/dim]")

    def close(self) -> None:
        """Write the footer and close the file. Safe to call twice."""
        if not self.log_file:
            return
        self._write_block(
            "Finished",
            [
                f"Completed: {datetime.now().isoformat()}",
                f"Status: {'FAILED' if self.failed else 'SUCCESS'}",
            ],
            rule="=",
        )
        self.log_file.close()
        self.log_file = None


def run_with_progress(
    logger: DeployLogger,
    command: list[str],
    description: str,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> tuple[int, str, str]:
    """
    Run a short command (no shell) with a spinner, capturing its output.

    Args:
        logger: DeployLogger receiving the command and its output
        command: Command argv
        description: Spinner text
        cwd: Working directory
        timeout: Seconds before subprocess.TimeoutExpired is raised

    Returns:
        (returncode, stdout, stderr)
    """
    logger.log_command(shlex.join(command))

    def _run() -> subprocess.CompletedProcess:
        return subprocess.run(
            command, cwd=cwd, capture_output=True, text=True, timeout=timeout
        )

    if logger.verbose or logger.quiet:
        result = _run()
    else:
        with console.status(f"[cyan]{description}...[/cyan]", spinner="dots"):
            result = _run()
        mark = "[dim]✓[/dim]" if result.returncode == 0 else "[red]✗[/red]"
        console.print(f"  {mark} [dim]{description}[/dim]")

    logger.log_output(result.stdout, "stdout")
    logger.log_output(result.stderr, "stderr")
    return result.returncode, result.stdout, result.stderr
