"""
Deployment Command Base Class

Base class for commands that act on one target VM.
Resolves the run configuration from flags, request file, config and env.
"""

from pathlib import Path
from typing import Optional, Dict, Any

from .base_command import BaseCommand
from iapdeploy.config import load_defaults, load_request_file
from iapdeploy.models.request import ResolvedConfig
from iapdeploy.models.inventory import InventoryDocument
from iapdeploy.services import ParameterResolver, InventoryRenderer


class DeploymentCommand(BaseCommand):
    """
    Base class for target-specific commands.

    Provides:
    - Layered parameter resolution (flags > request file > env > config)
    - Inventory rendering
    """

    def __init__(
        self,
        overrides: Optional[Dict[str, Any]] = None,
        request_file: Optional[str] = None,
        config_path: Optional[str] = None,
        playbook_dir: Optional[Path] = None,
        extra_vars: Optional[Dict[str, str]] = None,
        run_options: Optional[Dict[str, Any]] = None,
        verbose: bool = False,
        json_output: bool = False,
        log_root: Optional[Path] = None,
    ):
        super().__init__(verbose=verbose, json_output=json_output, log_root=log_root)
        self.overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self.request_file = request_file
        self.config_path = config_path
        self.playbook_dir = playbook_dir
        self.extra_vars = extra_vars or {}
        self.run_options = {k: v for k, v in (run_options or {}).items() if v is not None}

    def resolve_config(self) -> ResolvedConfig:
        """
        Resolve the run configuration.

        Returns:
            ResolvedConfig for this invocation

        Raises:
            ConfigurationError: If a config or request file is invalid
            InvalidParameter: If a resolved value is invalid
        """
        defaults = load_defaults(self.config_path)

        overrides: Dict[str, Any] = {}
        if self.request_file:
            overrides.update(load_request_file(self.request_file))
        overrides.update(self.overrides)

        resolver = ParameterResolver(defaults)
        return resolver.resolve(
            overrides,
            playbook_dir=self.playbook_dir,
            extra_vars=self.extra_vars,
            **self.run_options,
        )

    def render_inventory(self, config: ResolvedConfig) -> InventoryDocument:
        """Render the inventory for a resolved config."""
        return InventoryRenderer().render(config)
