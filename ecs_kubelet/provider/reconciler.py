"""Derivation of pod phases from polled back-end task state.

Precedence, highest first:
1. task missing in the back end: pod is absent
2. a container exited non-zero, the task failed to start, or the task
   stopped with a container lacking an exit code: Failed
3. every container exited zero: Succeeded
4. every container running: Running
5. anything else: Pending
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..pods.interface import (
    DESCRIBE_BATCH_SIZE,
    ContainerStatus,
    PodIdentity,
    PodPhase,
    PodStatus,
    TaskBackend,
    TaskDescription,
)
from .mapping import IdentityMapping, MappingEntry
from .throttle import TokenBucket

logger = logging.getLogger(__name__)

_CONTAINER_STATES = {
    "RUNNING": "running",
    "STOPPED": "terminated",
}


def derive_phase(description: TaskDescription) -> Tuple[PodPhase, Optional[str]]:
    """Map one task description to a phase and a short reason."""
    containers = description.containers
    task_stopped = description.last_status == "STOPPED"

    if description.stop_code == "TaskFailedToStart":
        return PodPhase.FAILED, description.stop_code
    for c in containers:
        if c.get("lastStatus") == "STOPPED" and c.get("exitCode") not in (None, 0):
            return PodPhase.FAILED, c.get("reason") or "ContainerExitedNonZero"
    if task_stopped and (not containers or any(c.get("exitCode") is None for c in containers)):
        # TODO: confirm against real ECS behavior whether stops without exit codes can be benign
        return PodPhase.FAILED, description.stop_code or "StoppedWithoutExitCode"

    if containers and all(c.get("lastStatus") == "STOPPED" and c.get("exitCode") == 0 for c in containers):
        return PodPhase.SUCCEEDED, None
    if containers and all(c.get("lastStatus") == "RUNNING" for c in containers):
        return PodPhase.RUNNING, None
    return PodPhase.PENDING, None


def container_statuses(description: TaskDescription) -> List[ContainerStatus]:
    statuses = []
    for c in description.containers:
        state = _CONTAINER_STATES.get(c.get("lastStatus", ""), "waiting")
        statuses.append(
            ContainerStatus(
                name=c.get("name", ""),
                state=state,
                image=c.get("image", ""),
                exit_code=c.get("exitCode"),
                reason=c.get("reason"),
                ready=state == "running",
            )
        )
    return statuses


class StatusReconciler:
    """Polls task state for tracked pods and reports front-end statuses.

    Pull based: nothing is pushed, callers poll at their own cadence.
    """

    def __init__(
        self,
        backend: TaskBackend,
        mapping: IdentityMapping,
        cluster: str,
        throttle: TokenBucket,
    ) -> None:
        self._backend = backend
        self._mapping = mapping
        self._cluster = cluster
        self._throttle = throttle

    def get_status(self, namespace: str, name: str) -> Optional[PodStatus]:
        """Status for one pod, or None when the pod is absent."""
        entry = self._mapping.get(namespace, name)
        if entry is None:
            return None
        return self._reconcile([entry]).get(entry.identity)

    def get_all(self) -> Dict[PodIdentity, PodStatus]:
        """Statuses for every tracked pod, batching describe calls."""
        return self._reconcile(self._mapping.list_entries())

    def _reconcile(self, entries: Sequence[MappingEntry]) -> Dict[PodIdentity, PodStatus]:
        statuses: Dict[PodIdentity, PodStatus] = {}
        for start in range(0, len(entries), DESCRIBE_BATCH_SIZE):
            batch = entries[start : start + DESCRIBE_BATCH_SIZE]
            self._throttle.acquire()
            found, missing = self._backend.describe_tasks(self._cluster, [e.handle for e in batch])
            missing_arns = set(missing)
            for entry in batch:
                status = self._observe(entry, found.get(entry.handle.task_arn), entry.handle.task_arn in missing_arns)
                if status is not None:
                    statuses[entry.identity] = status
        return statuses

    def _observe(
        self,
        entry: MappingEntry,
        description: Optional[TaskDescription],
        missing: bool,
    ) -> Optional[PodStatus]:
        namespace, name = entry.identity.key
        if missing:
            self._mapping.remove(namespace, name, entry.handle)
            logger.warning("Task %s for pod %s no longer exists, mapping dropped", entry.handle.task_arn, entry.identity)
            return None

        if description is None:
            logger.warning("No description returned for task %s (pod %s)", entry.handle.task_arn, entry.identity)
            return PodStatus(
                phase=PodPhase.UNKNOWN,
                reason="DescribeFailed",
                container_statuses=[ContainerStatus(name=n, state="waiting") for n in entry.container_names],
            )

        phase, reason = derive_phase(description)
        reported = self._mapping.observe_phase(namespace, name, entry.handle, phase)
        if self._mapping.drop_if_finished(namespace, name, entry.handle):
            return None

        return PodStatus(
            phase=reported,
            reason=reason if reported == phase else None,
            message=description.stopped_reason,
            pod_ip=description.private_ip,
            started_at=description.started_at,
            container_statuses=container_statuses(description),
        )
