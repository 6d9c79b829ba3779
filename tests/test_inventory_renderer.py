"""Tests for InventoryRenderer and the inventory models."""

import shlex
from dataclasses import replace

import pytest
import yaml

from iapdeploy.exceptions import RenderError
from iapdeploy.services import InventoryRenderer


@pytest.fixture
def renderer():
    return InventoryRenderer()


def test_single_group_single_host(renderer, config):
    inventory = renderer.render(config)

    assert list(inventory.groups) == ["targets"]
    assert list(inventory.groups["targets"]) == ["vm-a"]

    entry = inventory.hosts["vm-a"]
    assert entry.address == "vm-a"
    assert entry.user == "ansible"
    assert entry.key_file == "projects/demo-project/secrets/ansible-ssh-key"
    assert entry.interpreter == "auto_silent"


def test_proxy_command_targets_configured_vm(renderer, config):
    entry = renderer.render(config).hosts["vm-a"]

    assert entry.proxy_command[:5] == ("gcloud", "compute", "start-iap-tunnel", "vm-a", "22")
    assert "--listen-on-stdin" in entry.proxy_command
    assert "--project=demo-project" in entry.proxy_command
    assert "--zone=us-central1-a" in entry.proxy_command


def test_service_account_impersonated(renderer, config):
    config = replace(config, service_account="deployer@demo-project.iam.gserviceaccount.com")

    entry = renderer.render(config).hosts["vm-a"]

    assert (
        "--impersonate-service-account=deployer@demo-project.iam.gserviceaccount.com"
        in entry.proxy_command
    )


def test_rendering_is_deterministic(renderer, config):
    first = renderer.render(config).to_yaml()
    second = renderer.render(config).to_yaml()

    assert first == second


def test_ansible_yaml_structure(renderer, config):
    data = yaml.safe_load(renderer.render(config).to_yaml())

    host_vars = data["targets"]["hosts"]["vm-a"]
    assert host_vars["ansible_host"] == "vm-a"
    assert host_vars["ansible_user"] == "ansible"
    assert host_vars["ansible_python_interpreter"] == "auto_silent"
    assert "StrictHostKeyChecking=no" in host_vars["ansible_ssh_common_args"]


def test_proxy_command_survives_ssh_splitting(renderer, config):
    host_vars = renderer.render(config).hosts["vm-a"].to_ansible()

    args = shlex.split(host_vars["ansible_ssh_common_args"])
    proxy = args[1]

    assert proxy.startswith("ProxyCommand=")
    assert shlex.split(proxy[len("ProxyCommand="):])[:4] == [
        "gcloud",
        "compute",
        "start-iap-tunnel",
        "vm-a",
    ]


@pytest.mark.parametrize(
    "field,value",
    [
        ("target_vm", "vm-a;reboot"),
        ("target_vm", "vm-`id`"),
        ("target_vm", "vm-$(id)"),
        ("vm_zone", "us-central1-a && rm"),
        ("project_id", "demo|project"),
        ("ansible_user", "root'"),
        ("service_account", "sa@x\nProxyCommand"),
    ],
)
def test_shell_metacharacters_rejected(renderer, config, field, value):
    with pytest.raises(RenderError) as exc_info:
        renderer.render(replace(config, **{field: value}))

    assert exc_info.value.field == field
    assert exc_info.value.stage == "render"
    assert "metacharacters" in exc_info.value.message


def test_leading_dash_rejected(renderer, config):
    with pytest.raises(RenderError) as exc_info:
        renderer.render(replace(config, target_vm="-oProxyCommand"))

    assert "not a valid identifier" in exc_info.value.message


def test_bind_key_file_returns_copy(renderer, config):
    inventory = renderer.render(config)

    bound = inventory.bind_key_file("/tmp/run/ssh_key")

    assert bound.hosts["vm-a"].key_file == "/tmp/run/ssh_key"
    assert inventory.hosts["vm-a"].key_file == config.credential_ref


def test_plain_dict_form(renderer, config):
    data = renderer.render(config).to_dict()

    entry = data["targets"]["hosts"]["vm-a"]
    assert entry["address"] == "vm-a"
    assert entry["proxy_command"][0] == "gcloud"
