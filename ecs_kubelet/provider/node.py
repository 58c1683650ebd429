"""Node identity reported to the front end.

None of this affects task execution; it only describes the virtual node
the front end schedules pods onto.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import ProviderConfig


@dataclass(frozen=True)
class NodeInfo:
    name: str
    operating_system: str = "Linux"
    internal_ip: str = ""
    daemon_port: int = 10250


def node_capacity(config: ProviderConfig) -> Dict[str, str]:
    return {
        "cpu": config.capacity_cpu,
        "memory": config.capacity_memory,
        "pods": config.capacity_pods,
    }


def node_conditions(now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = now or datetime.now(timezone.utc)
    conditions = [
        ("Ready", "True", "KubeletReady", "kubelet is ready."),
        ("OutOfDisk", "False", "KubeletHasSufficientDisk", "kubelet has sufficient disk space available"),
        ("MemoryPressure", "False", "KubeletHasSufficientMemory", "kubelet has sufficient memory available"),
        ("DiskPressure", "False", "KubeletHasNoDiskPressure", "kubelet has no disk pressure"),
        ("NetworkUnavailable", "False", "RouteCreated", "RouteController created a route"),
    ]
    return [
        {
            "type": kind,
            "status": status,
            "reason": reason,
            "message": message,
            "lastHeartbeatTime": now.isoformat(),
            "lastTransitionTime": now.isoformat(),
        }
        for kind, status, reason, message in conditions
    ]


def node_addresses(node: NodeInfo) -> List[Dict[str, str]]:
    if not node.internal_ip:
        return []
    return [{"type": "InternalIP", "address": node.internal_ip}]


def node_daemon_endpoints(node: NodeInfo) -> Dict[str, Dict[str, int]]:
    return {"kubeletEndpoint": {"Port": node.daemon_port}}
