"""
Configuration Loading

Builds the per-run DeploymentDefaults from, in increasing precedence:
built-in constants, a YAML config file, a .env file and the process
environment. Also loads JSON/YAML deployment request files.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Dict, Any, Mapping

import yaml
from dotenv import dotenv_values

from iapdeploy.constants import (
    DEFAULT_VM_ZONE,
    DEFAULT_PLAYBOOK,
    DEFAULT_GIT_BRANCH,
    DEFAULT_ANSIBLE_USER,
    DEFAULT_SSH_KEY_SECRET,
    DEFAULT_TUNNEL_TIMEOUT,
    DEFAULT_PLAYBOOK_TIMEOUT,
    DEFAULT_CONFIG_PATH,
    DEFAULT_ENV_FILE,
    ENV_PREFIX,
    PROJECT_ENV_VARS,
)
from iapdeploy.exceptions import ConfigurationError

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class DeploymentDefaults:
    """
    One static default per request field.

    project_id and target_vm have no built-in value; they must come from
    the caller, the config file or the environment.
    """

    project_id: Optional[str] = None
    target_vm: Optional[str] = None
    vm_zone: str = DEFAULT_VM_ZONE
    playbook: str = DEFAULT_PLAYBOOK
    git_repo: str = ""
    git_branch: str = DEFAULT_GIT_BRANCH
    ansible_user: str = DEFAULT_ANSIBLE_USER
    service_account: str = ""
    ssh_key_secret: str = DEFAULT_SSH_KEY_SECRET
    skip_validation: bool = False
    strict_validation: bool = False
    tunnel_timeout: float = DEFAULT_TUNNEL_TIMEOUT
    playbook_timeout: float = DEFAULT_PLAYBOOK_TIMEOUT

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def merged(self, values: Mapping[str, Any]) -> "DeploymentDefaults":
        """Return a copy with known keys from values applied."""
        known = {
            key: coerce_value(key, value)
            for key, value in values.items()
            if key in self.field_names() and value is not None
        }
        return replace(self, **known)


def coerce_value(name: str, value: Any) -> Any:
    """Coerce a raw (often string) value to the type of the named field."""
    if name in ("skip_validation", "strict_validation"):
        return parse_bool(name, value)
    if name in ("tunnel_timeout", "playbook_timeout"):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"'{name}' must be a number", context=f"Got: {value!r}"
            )
    return str(value).strip()


def parse_bool(name: str, value: Any) -> bool:
    """Parse booleans the way YAML, JSON and env files spell them."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in TRUE_VALUES:
        return True
    if isinstance(value, str) and value.strip().lower() in FALSE_VALUES:
        return False
    raise ConfigurationError(f"'{name}' must be a boolean", context=f"Got: {value!r}")


def _read_yaml_defaults(path: Path) -> Dict[str, Any]:
    """Read the `defaults:` section of a YAML config file."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}", context=str(e))

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    section = data.get("defaults", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"'defaults' in {path} must be a mapping")
    return section


def _env_overrides(env: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    """Pick IAPDEPLOY_<FIELD> values (and the gcloud project) from env."""
    values: Dict[str, Any] = {}

    for var in reversed(PROJECT_ENV_VARS):
        if env.get(var):
            values["project_id"] = env[var]

    for name in DeploymentDefaults.field_names():
        key = f"{ENV_PREFIX}{name.upper()}"
        if env.get(key) is not None:
            values[name] = env[key]

    return values


def load_defaults(
    config_path: Optional[str] = None,
    env_file: Optional[str] = DEFAULT_ENV_FILE,
    environ: Optional[Mapping[str, str]] = None,
) -> DeploymentDefaults:
    """
    Build DeploymentDefaults for one run.

    Args:
        config_path: Explicit YAML config file; must exist if given.
            When None, ~/.iapdeploy.yml is used if present.
        env_file: .env file to read (skipped if missing or None)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        DeploymentDefaults with every layer applied
    """
    defaults = DeploymentDefaults()

    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        defaults = defaults.merged(_read_yaml_defaults(path))
    else:
        path = Path(DEFAULT_CONFIG_PATH).expanduser()
        if path.exists():
            defaults = defaults.merged(_read_yaml_defaults(path))

    if env_file and Path(env_file).exists():
        defaults = defaults.merged(_env_overrides(dotenv_values(env_file)))

    environ = os.environ if environ is None else environ
    return defaults.merged(_env_overrides(environ))


def load_request_file(path: str) -> Dict[str, Any]:
    """
    Load a deployment request from a JSON or YAML file.

    Returns:
        Raw override mapping (validated later by the resolver)
    """
    request_path = Path(path).expanduser()
    if not request_path.exists():
        raise ConfigurationError(f"Request file not found: {request_path}")

    with open(request_path, "r") as f:
        try:
            if request_path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Could not parse request file {request_path}", context=str(e)
            )

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Request file {request_path} must contain a mapping",
            context=f"Got: {type(data).__name__}",
        )
    return data
