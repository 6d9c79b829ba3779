"""Click options shared by the target-specific commands."""

from pathlib import Path

import rich_click as click


def parse_extra_vars(_ctx, _param, values) -> dict:
    """Turn repeated KEY=VALUE options into a dict."""
    extra_vars = {}
    for item in values or ():
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{item}'")
        extra_vars[key] = value
    return extra_vars


TARGET_OPTIONS = [
    click.option("--target", "-t", "target_vm", help="Target VM name"),
    click.option("--zone", "-z", "vm_zone", help="Zone of the target VM"),
    click.option("--project", "-p", "project_id", help="Google Cloud project id"),
    click.option("--user", "-u", "ansible_user", help="SSH user on the VM"),
    click.option(
        "--service-account", help="Service account to impersonate for the tunnel"
    ),
    click.option("--ssh-key-secret", help="Secret Manager secret holding the SSH key"),
    click.option(
        "--request",
        "request_file",
        type=click.Path(exists=True, dir_okay=False),
        help="JSON/YAML deployment request file",
    ),
    click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False),
        help="YAML config file (default: ~/.iapdeploy.yml)",
    ),
]

OUTPUT_OPTIONS = [
    click.option(
        "--log-dir",
        type=click.Path(file_okay=False, path_type=Path),
        help="Logs directory (default: ~/.iapdeploy/logs)",
    ),
    click.option("--json", "json_output", is_flag=True, help="Output as JSON"),
    click.option("--verbose", "-v", is_flag=True, help="Show all output"),
]


def _apply(options, func):
    for option in reversed(options):
        func = option(func)
    return func


def target_options(func):
    """Options naming the target VM and how to reach it."""
    return _apply(TARGET_OPTIONS, func)


def output_options(func):
    """Logging and output format options."""
    return _apply(OUTPUT_OPTIONS, func)
