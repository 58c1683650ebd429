"""Provider facade scheduling pods onto ECS Fargate tasks.

Example:

    from ecs_kubelet.provider import FargateProvider, NodeInfo

    provider = FargateProvider("/etc/ecs-kubelet.toml", NodeInfo(name="vk-fargate"))
    provider.create_pod(pod)
    status = provider.get_pod_status("default", pod.name)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from ..backend.ecs import CloudWatchLogBackend, ECSTaskBackend
from ..config import ProviderConfig, load_config
from ..pods.interface import (
    Container,
    LogBackend,
    Pod,
    PodIdentity,
    PodStatus,
    TaskBackend,
)
from . import node as node_meta
from .lifecycle import LifecycleManager
from .logs import LogRetriever
from .mapping import IdentityMapping
from .node import NodeInfo
from .reconciler import StatusReconciler
from .throttle import TokenBucket

logger = logging.getLogger(__name__)


class FargateProvider:
    """Front-end facing provider.

    Each instance owns its back-end clients and identity mapping, so several
    providers can coexist in one process.
    """

    def __init__(
        self,
        config: Union[ProviderConfig, str, None],
        node: NodeInfo,
        *,
        task_backend: Optional[TaskBackend] = None,
        log_backend: Optional[LogBackend] = None,
        restore: bool = False,
    ) -> None:
        self.config = config if isinstance(config, ProviderConfig) else load_config(config)
        self.node = node

        self._task_backend = task_backend or ECSTaskBackend(
            region=self.config.region, max_attempts=self.config.max_attempts
        )
        self._log_backend = log_backend or CloudWatchLogBackend(
            region=self.config.region, max_attempts=self.config.max_attempts
        )
        self.mapping = IdentityMapping()

        self._lifecycle = LifecycleManager(self._task_backend, self.mapping, self.config, node.name)
        self._reconciler = StatusReconciler(
            self._task_backend,
            self.mapping,
            self.config.cluster,
            TokenBucket(self.config.status_rate),
        )
        self._logs = LogRetriever(
            self._log_backend,
            self.mapping,
            self.config.log_group,
            TokenBucket(self.config.logs_rate),
        )

        logger.info(
            "Fargate provider %s ready (cluster=%s region=%s)",
            node.name,
            self.config.cluster,
            self.config.region,
        )
        if restore:
            self._lifecycle.restore()

    # --- pod operations ---

    def create_pod(self, pod: Pod) -> None:
        self._lifecycle.create(pod)

    def delete_pod(self, pod: Pod) -> None:
        self._lifecycle.delete(pod.namespace, pod.name)

    def get_pod_status(self, namespace: str, name: str) -> Optional[PodStatus]:
        return self._reconciler.get_status(namespace, name)

    def get_pod(self, namespace: str, name: str) -> Optional[Pod]:
        status = self._reconciler.get_status(namespace, name)
        entry = self.mapping.get(namespace, name)
        if status is None or entry is None:
            return None
        return _pod_from_status(entry.identity, status)

    def get_pods(self) -> List[Pod]:
        """Every tracked pod with its derived status."""
        statuses = self._reconciler.get_all()
        return [_pod_from_status(identity, status) for identity, status in statuses.items()]

    def get_container_logs(self, namespace: str, name: str, container: str, tail_lines: int) -> str:
        return self._logs.get_logs(namespace, name, container, tail_lines)

    def list_live_pods(self) -> List[PodIdentity]:
        return self._lifecycle.list()

    def start_monitoring(self):
        """Start the status server when MonitoringEnabled is set.

        Returns the running MonitoringServer, or None.
        """
        if not self.config.monitoring_enabled:
            return None
        from ..monitoring import parse_bind, start_monitoring_server

        host, port = parse_bind(self.config.monitoring_bind)
        return start_monitoring_server(self, host, port)

    # --- node operations ---

    def capacity(self) -> Dict[str, str]:
        return node_meta.node_capacity(self.config)

    def node_conditions(self) -> List[Dict[str, Any]]:
        return node_meta.node_conditions()

    def node_addresses(self) -> List[Dict[str, str]]:
        return node_meta.node_addresses(self.node)

    def node_daemon_endpoints(self) -> Dict[str, Dict[str, int]]:
        return node_meta.node_daemon_endpoints(self.node)

    def operating_system(self) -> str:
        return self.node.operating_system


def _pod_from_status(identity: PodIdentity, status: PodStatus) -> Pod:
    containers = tuple(Container(name=cs.name, image=cs.image) for cs in status.container_statuses)
    return Pod(identity=identity, containers=containers, status=status)
