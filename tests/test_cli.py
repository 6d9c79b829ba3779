"""CLI tests using click's CliRunner."""

import json
import os
import subprocess
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from iapdeploy import __version__
from iapdeploy.commands.doctor import project_access_error
from iapdeploy.exceptions import PlaybookError
from iapdeploy.main import cli
from iapdeploy.models.results import (
    ComponentStatus,
    ExecutionResult,
    RunStatus,
    ValidationReport,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep user config, .env files and gcloud settings out of the tests."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CLOUDSDK_CORE_PROJECT", raising=False)
    for name in list(os.environ):
        if name.startswith("IAPDEPLOY_"):
            monkeypatch.delenv(name)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def log_dir(tmp_path):
    return str(tmp_path / "logs")


def succeeded(validation=None):
    return ExecutionResult(
        status=RunStatus.SUCCEEDED, exit_code=0, duration=12.5, validation=validation
    )


def test_help_lists_commands(runner):
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for name in ("deploy", "inventory", "validate", "doctor"):
        assert name in result.output


def test_version(runner):
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_inventory_json(runner):
    result = runner.invoke(cli, ["inventory", "-t", "vm-a", "-p", "demo-project", "--format", "json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert list(data) == ["targets"]
    assert data["targets"]["hosts"]["vm-a"]["key_file"] == (
        "projects/demo-project/secrets/ansible-ssh-key"
    )


def test_inventory_ansible_yaml(runner):
    result = runner.invoke(cli, ["inventory", "-t", "vm-a", "-p", "demo-project", "-u", "deployer"])

    assert result.exit_code == 0, result.output
    host_vars = yaml.safe_load(result.output)["targets"]["hosts"]["vm-a"]
    assert host_vars["ansible_user"] == "deployer"
    assert "start-iap-tunnel vm-a 22" in host_vars["ansible_ssh_common_args"]


def test_inventory_from_request_file(runner, tmp_path):
    request = tmp_path / "request.yml"
    request.write_text("target_vm: vm-b\nproject_id: demo-project\nvm_zone: europe-west1-b\n")

    result = runner.invoke(cli, ["inventory", "--request", str(request), "--format", "yaml"])

    assert result.exit_code == 0, result.output
    entry = yaml.safe_load(result.output)["targets"]["hosts"]["vm-b"]
    assert "--zone=europe-west1-b" in entry["proxy_command"]


def test_flags_override_request_file(runner, tmp_path):
    request = tmp_path / "request.json"
    request.write_text(json.dumps({"target_vm": "vm-b", "project_id": "demo-project"}))

    result = runner.invoke(
        cli, ["inventory", "--request", str(request), "-t", "vm-c", "--format", "json"]
    )

    assert result.exit_code == 0, result.output
    assert list(json.loads(result.output)["targets"]["hosts"]) == ["vm-c"]


def test_project_from_environment(runner, monkeypatch):
    monkeypatch.setenv("IAPDEPLOY_PROJECT_ID", "env-project")

    result = runner.invoke(cli, ["inventory", "-t", "vm-a", "--format", "json"])

    assert result.exit_code == 0, result.output
    assert "--project=env-project" in result.output


def test_unsafe_target_rejected(runner):
    result = runner.invoke(cli, ["inventory", "-t", "vm-a;reboot", "-p", "demo-project"])

    assert result.exit_code == 1
    assert "metacharacters" in result.output


def test_missing_project(runner):
    result = runner.invoke(cli, ["inventory", "-t", "vm-a"])

    assert result.exit_code == 1
    assert "project_id" in result.output


@patch("iapdeploy.commands.deploy.ExecutionDriver")
def test_deploy_json_report(driver_cls, runner, log_dir):
    driver_cls.return_value.run.return_value = succeeded()

    result = runner.invoke(
        cli,
        [
            "deploy",
            "-t",
            "vm-a",
            "-p",
            "demo-project",
            "--skip-validation",
            "-e",
            "env=prod",
            "--log-dir",
            log_dir,
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {
        "status": "succeeded",
        "exit_code": 0,
        "duration": 12.5,
        "validation": {},
    }

    config, inventory = driver_cls.return_value.run.call_args[0]
    assert config.skip_validation is True
    assert config.extra_vars == {"env": "prod"}
    assert list(inventory.hosts) == ["vm-a"]


@patch("iapdeploy.commands.deploy.ExecutionDriver")
def test_deploy_playbook_failure_keeps_exit_code(driver_cls, runner, log_dir):
    failed = ExecutionResult(status=RunStatus.FAILED, exit_code=2, duration=3.0)
    driver_cls.return_value.run.side_effect = PlaybookError(2, ["fatal: [vm-a]"], failed)

    result = runner.invoke(
        cli, ["deploy", "-t", "vm-a", "-p", "demo-project", "--log-dir", log_dir, "--json"]
    )

    assert result.exit_code == 2
    data = json.loads(result.output)
    assert data["status"] == "failed"
    assert data["exit_code"] == 2
    assert data["error"] == "ansible-playbook exited with code 2"


@patch("iapdeploy.commands.deploy.ExecutionDriver")
def test_deploy_console_output(driver_cls, runner, log_dir):
    report = ValidationReport(
        [
            ComponentStatus("Python 3", "python3", True, "Python 3.9.18"),
            ComponentStatus("PostgreSQL Client", "psql", False),
        ]
    )
    driver_cls.return_value.run.return_value = succeeded(report)

    result = runner.invoke(cli, ["deploy", "-t", "vm-a", "-p", "demo-project", "--log-dir", log_dir])

    assert result.exit_code == 0, result.output
    assert "SUCCEEDED" in result.output
    assert "PostgreSQL Client" in result.output


def test_deploy_rejects_bad_extra_var(runner):
    result = runner.invoke(cli, ["deploy", "-t", "vm-a", "-p", "demo-project", "-e", "novalue"])

    assert result.exit_code == 2
    assert "KEY=VALUE" in result.output


def test_deploy_rejects_unknown_request_key(runner, tmp_path, log_dir):
    request = tmp_path / "request.yml"
    request.write_text("target_vm: vm-a\nproject_id: demo-project\nvm_size: large\n")

    result = runner.invoke(cli, ["deploy", "--request", str(request), "--log-dir", log_dir, "--json"])

    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["details"]["stage"] == "resolve"
    assert "vm_size" in data["error"]


@patch("iapdeploy.commands.validate.ExecutionDriver")
def test_validate_json(driver_cls, runner, log_dir):
    driver_cls.return_value.validate.return_value = ValidationReport(
        [
            ComponentStatus("Python 3", "python3", True, "Python 3.9.18"),
            ComponentStatus("npm", "npm", False),
        ]
    )

    result = runner.invoke(
        cli, ["validate", "-t", "vm-a", "-p", "demo-project", "--log-dir", log_dir, "--json"]
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["total"] == 2
    assert data["missing"] == 1
    assert data["validation"]["npm"]["status"] == "missing"


@patch("iapdeploy.commands.validate.ExecutionDriver")
def test_validate_strict_fails_on_missing(driver_cls, runner, log_dir):
    driver_cls.return_value.validate.return_value = ValidationReport(
        [ComponentStatus("npm", "npm", False)]
    )

    result = runner.invoke(
        cli, ["validate", "-t", "vm-a", "-p", "demo-project", "--log-dir", log_dir, "--strict"]
    )

    assert result.exit_code == 1
    assert "missing" in result.output


@patch("iapdeploy.commands.doctor.project_access_error", return_value="")
@patch("iapdeploy.commands.doctor.active_gcloud_account", return_value="ops@example.com")
@patch("iapdeploy.commands.doctor.shutil.which", return_value="/usr/bin/tool")
def test_doctor_passes(_which, _account, access, runner, monkeypatch):
    monkeypatch.setenv("IAPDEPLOY_PROJECT_ID", "demo-project")

    result = runner.invoke(cli, ["doctor"])

    assert result.exit_code == 0, result.output
    assert "ops@example.com" in result.output
    assert "Prerequisites check passed" in result.output
    access.assert_called_once_with("demo-project")


@patch(
    "iapdeploy.commands.doctor.project_access_error",
    return_value="ERROR: (gcloud.projects.describe) [ops@example.com] does not have permission",
)
@patch("iapdeploy.commands.doctor.active_gcloud_account", return_value="ops@example.com")
@patch("iapdeploy.commands.doctor.shutil.which", return_value="/usr/bin/tool")
def test_doctor_reports_inaccessible_project(_which, _account, _access, runner, monkeypatch):
    monkeypatch.setenv("IAPDEPLOY_PROJECT_ID", "demo-project")

    result = runner.invoke(cli, ["doctor"])

    assert result.exit_code == 1
    assert "project access" in result.output
    assert "1 check(s) failed" in result.output


def test_project_access_error_uses_describe():
    denied = subprocess.CompletedProcess([], 1, stdout="", stderr="ERROR: permission denied\n")

    with patch("iapdeploy.commands.doctor.subprocess.run", return_value=denied) as run:
        assert project_access_error("demo-project") == "ERROR: permission denied"

    assert run.call_args[0][0][:4] == ["gcloud", "projects", "describe", "demo-project"]


@patch("iapdeploy.commands.doctor.shutil.which", return_value=None)
def test_doctor_reports_missing_tools(_which, runner):
    result = runner.invoke(cli, ["doctor"])

    assert result.exit_code == 1
    assert "ansible-playbook" in result.output
