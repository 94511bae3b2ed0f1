"""mks - Morpheus Kubernetes Service cluster reconciler.

Create, read, scale and delete MKS clusters on VMware vSphere through the
Morpheus API.
"""

from mks._config import MksConfig, OperationTimeouts, PollSchedule, ReconcilerConfig
from mks._version import __version__
from mks.auth import AccessTokenAuth, AuthProvider, PasswordAuth
from mks.client import MorpheusClient
from mks.exceptions import (
    AuthenticationError,
    ConnectionError,
    ConvergenceCancelled,
    ConvergenceError,
    ConvergenceTimeout,
    InvariantError,
    MksError,
    NotFoundError,
    RateLimitError,
    RemoteCallError,
    RequestTimeoutError,
    TerminalFailureState,
    ValidationError,
    WorkerProvisionFailure,
)
from mks.models.spec import (
    ClusterSpec,
    ClusterState,
    MasterNodePool,
    NetworkInterfaceSpec,
    StorageVolumeSpec,
    WorkerNodePool,
)
from mks.poller import ConvergenceRequest, wait_for_state
from mks.reconciler import ClusterReconciler

__all__ = [
    # Version
    "__version__",
    # Client
    "MorpheusClient",
    "AuthProvider",
    "AccessTokenAuth",
    "PasswordAuth",
    # Configuration
    "MksConfig",
    "ReconcilerConfig",
    "OperationTimeouts",
    "PollSchedule",
    # Desired state
    "ClusterSpec",
    "ClusterState",
    "MasterNodePool",
    "WorkerNodePool",
    "StorageVolumeSpec",
    "NetworkInterfaceSpec",
    # Reconciliation
    "ClusterReconciler",
    "ConvergenceRequest",
    "wait_for_state",
    # Exceptions
    "MksError",
    "RemoteCallError",
    "AuthenticationError",
    "NotFoundError",
    "ValidationError",
    "RateLimitError",
    "ConnectionError",
    "RequestTimeoutError",
    "ConvergenceError",
    "ConvergenceTimeout",
    "ConvergenceCancelled",
    "WorkerProvisionFailure",
    "InvariantError",
    "TerminalFailureState",
]
