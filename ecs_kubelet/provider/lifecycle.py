"""Creation and termination of back-end tasks for pods."""

from __future__ import annotations

import logging
from typing import List

from ..config import ProviderConfig
from ..pods.interface import NotFound, Pod, PodIdentity, TaskBackend, TaskHandle
from ..translate.task_definition import (
    TAG_FINGERPRINT,
    TAG_NAME,
    TAG_NAMESPACE,
    TAG_UID,
    TaskTranslation,
    build_run_task_request,
    task_family,
    translate_pod,
)
from .mapping import IdentityMapping, MappingEntry

logger = logging.getLogger(__name__)

STOP_REASON = "Pod deleted by ecs-kubelet"


class LifecycleManager:
    """Owns creation and termination of tasks, one per pod identity.

    A mapping entry is written only after the launch succeeds, so a failed
    create can always be retried. Known race: a task definition may be
    registered by a create that later fails; re-registration is idempotent.
    """

    def __init__(
        self,
        backend: TaskBackend,
        mapping: IdentityMapping,
        config: ProviderConfig,
        node_name: str,
    ) -> None:
        self._backend = backend
        self._mapping = mapping
        self._config = config
        self._node_name = node_name

    def create(self, pod: Pod) -> MappingEntry:
        """Translate, register and launch a pod.

        Raises:
            TranslationError: before any back-end call, if the pod cannot be represented
            AlreadyExists: if the identity is tracked or being created
            TransientError, BackendError: if a back-end call fails
        """
        translation = translate_pod(pod, self._config)

        existing = self._mapping.get(pod.namespace, pod.name)
        if existing is not None and existing.delete_requested and existing.last_phase.is_terminal:
            # Deleted and finished, only waiting for a final observation
            self._mapping.remove(pod.namespace, pod.name, existing.handle)

        self._mapping.reserve(pod.identity)
        try:
            task_definition_arn = self._ensure_task_definition(translation)
            request = build_run_task_request(pod, task_definition_arn, self._config, self._node_name)
            handle = self._backend.run_task(request)
        except BaseException:
            self._mapping.release(pod.identity)
            raise

        entry = MappingEntry(
            identity=pod.identity,
            handle=handle,
            family=translation.family,
            task_definition_arn=task_definition_arn,
            container_names=translation.container_names,
        )
        self._mapping.record(entry)
        logger.info("Launched task %s for pod %s", handle.task_arn, pod.identity)
        return entry

    def delete(self, namespace: str, name: str) -> None:
        """Request the pod's task to stop.

        Returns once the stop request is accepted; convergence is observed
        later by the reconciler.

        Raises:
            NotFound: if no task is tracked for the pod
        """
        entry = self._mapping.get(namespace, name)
        if entry is None:
            raise NotFound(f"pod {namespace}/{name} is not tracked")

        stopped = self._backend.stop_task(self._config.cluster, entry.handle, STOP_REASON)
        if not stopped:
            self._mapping.remove(namespace, name, entry.handle)
            logger.info("Task %s for pod %s no longer exists, mapping dropped", entry.handle.task_arn, entry.identity)
            return

        self._mapping.mark_delete_requested(namespace, name)
        logger.info("Stop requested for task %s (pod %s)", entry.handle.task_arn, entry.identity)

    def list(self) -> List[PodIdentity]:
        """Identities with a live (non-terminal) task."""
        return [entry.identity for entry in self._mapping.list_entries(live_only=True)]

    def restore(self) -> int:
        """Re-derive the mapping from tasks this node launched.

        Returns:
            Number of entries restored
        """
        handles = self._backend.list_tasks(self._config.cluster, self._node_name[:36])
        if not handles:
            return 0

        found, _missing = self._backend.describe_tasks(self._config.cluster, handles)
        restored = 0
        for description in found.values():
            namespace = description.tags.get(TAG_NAMESPACE)
            name = description.tags.get(TAG_NAME)
            if not namespace or not name:
                logger.debug("Skipping untagged task %s", description.task_arn)
                continue
            if self._mapping.get(namespace, name) is not None:
                continue
            identity = PodIdentity(namespace=namespace, name=name, uid=description.tags.get(TAG_UID, ""))
            self._mapping.record(
                MappingEntry(
                    identity=identity,
                    handle=TaskHandle(task_arn=description.task_arn),
                    family=task_family(identity, self._config.task_family_prefix),
                    task_definition_arn=description.task_definition_arn,
                    container_names=tuple(c["name"] for c in description.containers),
                )
            )
            restored += 1

        logger.info("Restored %d pod mapping(s) from cluster %s", restored, self._config.cluster)
        return restored

    def _ensure_task_definition(self, translation: TaskTranslation) -> str:
        latest = self._backend.latest_task_definition(translation.family)
        if latest is not None and latest.get("tags", {}).get(TAG_FINGERPRINT) == translation.fingerprint:
            logger.debug("Reusing task definition %s", latest["taskDefinitionArn"])
            return latest["taskDefinitionArn"]
        return self._backend.register_task_definition(translation.task_definition)
