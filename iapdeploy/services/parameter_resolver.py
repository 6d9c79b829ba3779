"""Service for resolving deployment parameters against defaults."""

import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from iapdeploy.config import DeploymentDefaults, parse_bool, coerce_value
from iapdeploy.exceptions import InvalidParameter, ConfigurationError
from iapdeploy.models.request import DeploymentRequest, ResolvedConfig

PLAYBOOK_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]*\.ya?ml$")

# Fields that may legitimately resolve to an empty string
OPTIONAL_FIELDS = ("git_repo", "service_account")

MISSING_HINTS = {
    "project_id": "Pass --project, set defaults.project_id in ~/.iapdeploy.yml "
    "or export IAPDEPLOY_PROJECT_ID",
    "target_vm": "Pass --target or set target_vm in the request file",
}


class ParameterResolver:
    """
    Merges caller overrides with DeploymentDefaults into a ResolvedConfig.

    Each field is either fully overridden or fully defaulted. No side
    effects; failures raise InvalidParameter before anything else runs.
    """

    def __init__(self, defaults: Optional[DeploymentDefaults] = None):
        self.defaults = defaults or DeploymentDefaults()

    def resolve(
        self,
        overrides: Union[Mapping[str, Any], DeploymentRequest, None] = None,
        playbook_dir: Optional[Path] = None,
        extra_vars: Optional[Dict[str, str]] = None,
        **options: Any,
    ) -> ResolvedConfig:
        """
        Resolve overrides into a ResolvedConfig.

        Args:
            overrides: Request fields set by the caller (mapping or request)
            playbook_dir: Directory local playbooks are resolved against
            extra_vars: Extra variables passed to ansible-playbook
            **options: Run options (strict_validation, tunnel_timeout,
                playbook_timeout); None means default

        Returns:
            ResolvedConfig with every required field non-empty

        Raises:
            InvalidParameter: If a supplied value is unknown, empty or malformed
        """
        if isinstance(overrides, DeploymentRequest):
            overrides = overrides.overrides()
        overrides = dict(overrides or {})

        allowed = DeploymentRequest.field_names()
        for key in overrides:
            if key not in allowed:
                raise InvalidParameter(
                    key, "unknown parameter", context=f"Allowed: {', '.join(allowed)}"
                )

        for key in options:
            if key not in ("strict_validation", "tunnel_timeout", "playbook_timeout"):
                raise InvalidParameter(key, "unknown run option")

        values = {
            name: self._pick(name, overrides.get(name))
            for name in allowed
        }
        run_options = {
            name: self._pick(name, options.get(name))
            for name in ("strict_validation", "tunnel_timeout", "playbook_timeout")
        }

        self._validate(values, run_options)

        return ResolvedConfig(
            project_id=values["project_id"],
            target_vm=values["target_vm"],
            vm_zone=values["vm_zone"],
            playbook=values["playbook"],
            git_branch=values["git_branch"],
            ansible_user=values["ansible_user"],
            ssh_key_secret=values["ssh_key_secret"],
            git_repo=values["git_repo"] or "",
            service_account=values["service_account"] or "",
            skip_validation=values["skip_validation"],
            strict_validation=run_options["strict_validation"],
            tunnel_timeout=run_options["tunnel_timeout"],
            playbook_timeout=run_options["playbook_timeout"],
            playbook_dir=Path(playbook_dir) if playbook_dir else Path.cwd(),
            extra_vars=dict(extra_vars or {}),
        )

    def _pick(self, name: str, value: Any) -> Any:
        """Take the override if set, otherwise the field's default."""
        if value is None:
            return getattr(self.defaults, name)

        if isinstance(value, str) and not value.strip() and name not in OPTIONAL_FIELDS:
            raise InvalidParameter(name, "must not be empty")

        try:
            if name in ("skip_validation", "strict_validation"):
                return parse_bool(name, value)
            return coerce_value(name, value)
        except ConfigurationError as e:
            raise InvalidParameter(name, e.message, context=e.context)

    def _validate(self, values: Dict[str, Any], run_options: Dict[str, Any]) -> None:
        for name in ResolvedConfig.REQUIRED_FIELDS:
            value = values.get(name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidParameter(name, "is required", context=MISSING_HINTS.get(name))

        playbook = values["playbook"]
        if not PLAYBOOK_PATTERN.match(playbook) or ".." in playbook.split("/"):
            raise InvalidParameter(
                "playbook",
                "must be a relative .yml/.yaml path",
                context=f"Got: {playbook!r}",
            )

        for name in ("tunnel_timeout", "playbook_timeout"):
            if run_options[name] <= 0:
                raise InvalidParameter(name, "must be positive")
