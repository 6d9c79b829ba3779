"""
iapdeploy Services Layer

Resolver, renderer and the side-effecting services the driver composes.
"""

from .parameter_resolver import ParameterResolver
from .inventory_renderer import InventoryRenderer
from .secret_service import SecretService
from .tunnel_service import IAPTunnel, build_iap_tunnel_command
from .ssh_service import SSHService
from .validation_service import ValidationService
from .host_lock import HostLock
from .execution_driver import ExecutionDriver

__all__ = [
    "ParameterResolver",
    "InventoryRenderer",
    "SecretService",
    "IAPTunnel",
    "build_iap_tunnel_command",
    "SSHService",
    "ValidationService",
    "HostLock",
    "ExecutionDriver",
]
