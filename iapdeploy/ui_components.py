"""
iapdeploy - UI Components
Standardized headers and result tables
"""

from rich.console import Console
from rich.table import Table

from iapdeploy.models.results import ExecutionResult, ValidationReport

LOGO = "iapdeploy"

# Color scheme
BRAND_COLOR = "color(214)"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"


def show_header(
    title: str,
    subtitle: str = None,
    details: dict = None,
    console: Console = None,
):
    """
    Display a standardized command header.

    Args:
        title: Main title (e.g., "Deploy", "Validate")
        subtitle: Optional subtitle line
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)

    Example:
        show_header(
            title="Deploy",
            details={"VM": "vm-a", "Zone": "us-central1-a"}
        )
    """
    if console is None:
        console = Console()

    prefix = f" [bold {BRAND_COLOR}]{LOGO}[/bold {BRAND_COLOR}] [dim]›[/dim]"

    console.print(f"{prefix} [bold white]{title}[/bold white]")

    if subtitle:
        console.print(f"{prefix} [dim]{subtitle}[/dim]")

    if details:
        for key, value in details.items():
            console.print(f"{prefix} {key}: [cyan]{value}[/cyan]", highlight=False)

    console.print()


def validation_table(report: ValidationReport) -> Table:
    """Table with one row per checked component."""
    table = Table(title="Component Validation", title_justify="left", padding=(0, 1))
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Version", style="dim")

    for component in report.components:
        if component.installed:
            table.add_row(component.name, f"[{SUCCESS_COLOR}]Installed[/{SUCCESS_COLOR}]", component.version)
        else:
            table.add_row(component.name, f"[{ERROR_COLOR}]Missing[/{ERROR_COLOR}]", component.detail)

    return table


def show_result(result: ExecutionResult, console: Console) -> None:
    """Print the summary of a finished run."""
    color = SUCCESS_COLOR if result.is_success else ERROR_COLOR
    console.print()
    console.print(
        f"[bold {color}]{result.status.value.upper()}[/bold {color}] "
        f"[dim]exit code {result.exit_code} · {result.duration:.1f}s[/dim]"
    )

    if result.validation is not None:
        console.print()
        console.print(validation_table(result.validation))
        missing = result.validation.missing
        if missing:
            console.print(
                f"\n[{WARNING_COLOR}]⚠ {len(missing)} component(s) missing: "
                f"{', '.join(missing)}[/{WARNING_COLOR}]"
            )

    if result.log_path:
        console.print(f"\n[dim]Logs saved to:[/dim] {result.log_path}")
