#!/usr/bin/env python3
"""iapdeploy CLI entry point"""

import functools
import os
import traceback

import rich_click as click
from rich.console import Console

from iapdeploy import __version__
from iapdeploy.commands import deploy, doctor, inventory, validate

# Help output styling
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.MAX_WIDTH = 100
click.rich_click.STYLE_COMMAND = "bold color(214)"
click.rich_click.STYLE_OPTION = "bold cyan"
click.rich_click.STYLE_SWITCH = "bold green"
click.rich_click.STYLE_USAGE = "bold color(214)"
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "dim"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "dim"

console = Console(stderr=True)


def handle_cli_errors(func):
    """Last-resort handler for anything commands did not map to an exit code."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException as e:
            e.show()
            raise SystemExit(e.exit_code)
        except KeyboardInterrupt:
            console.print("[yellow]Cancelled[/yellow]")
            raise SystemExit(130)
        except Exception as e:
            console.print(f"[bold red]✗ {type(e).__name__}:[/bold red] {e}", highlight=False)
            if os.environ.get("IAPDEPLOY_DEBUG"):
                traceback.print_exc()
            raise SystemExit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="iapdeploy")
def cli() -> None:
    """
    iapdeploy - run golden-image Ansible playbooks on private VMs over IAP.

    \b
    Quick Start:
      iapdeploy doctor                                   # Check prerequisites
      iapdeploy inventory -t vm-a -p my-project          # Preview inventory
      iapdeploy deploy -t vm-a -z us-central1-a -p my-project
      iapdeploy validate -t vm-a -p my-project           # Re-check components
    """


for command in (deploy.deploy, validate.validate, inventory.inventory, doctor.doctor):
    cli.add_command(command)


@handle_cli_errors
def main():
    cli()


if __name__ == "__main__":
    main()
