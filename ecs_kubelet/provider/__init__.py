"""Pod provider backed by ECS Fargate.

Boundary rules:
- Provider modules depend only on the `TaskBackend`/`LogBackend` protocols.
- Only the facade names the boto3-backed default back ends; tests inject fakes.
- The identity mapping is the only state the provider keeps.
"""

from .fargate import FargateProvider
from .lifecycle import LifecycleManager
from .logs import LogRetriever
from .mapping import IdentityMapping, MappingEntry
from .node import NodeInfo
from .reconciler import StatusReconciler, derive_phase
from .throttle import TokenBucket
from .wait import wait_for_phase

__all__ = [
    "FargateProvider",
    "IdentityMapping",
    "LifecycleManager",
    "LogRetriever",
    "MappingEntry",
    "NodeInfo",
    "StatusReconciler",
    "TokenBucket",
    "derive_phase",
    "wait_for_phase",
]
