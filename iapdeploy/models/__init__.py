"""
iapdeploy Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .request import (
    DeploymentRequest,
    ResolvedConfig,
)
from .inventory import (
    HostEntry,
    InventoryDocument,
)
from .results import (
    RunStatus,
    RunState,
    ComponentStatus,
    ValidationReport,
    ExecutionResult,
    SSHResult,
)
from .ssh import TunnelEndpoint

__all__ = [
    # Request
    "DeploymentRequest",
    "ResolvedConfig",
    # Inventory
    "HostEntry",
    "InventoryDocument",
    # Results
    "RunStatus",
    "RunState",
    "ComponentStatus",
    "ValidationReport",
    "ExecutionResult",
    "SSHResult",
    # SSH
    "TunnelEndpoint",
]
