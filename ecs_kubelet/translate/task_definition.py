"""Pod to ECS task definition translation.

Pure functions: no back-end calls happen here, so a pod that cannot be
represented is rejected before anything is registered.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import ProviderConfig
from ..pods.interface import Container, Pod, PodIdentity, TranslationError
from . import resources

logger = logging.getLogger(__name__)

TAG_NAMESPACE = "ecs-kubelet/namespace"
TAG_NAME = "ecs-kubelet/name"
TAG_UID = "ecs-kubelet/uid"
TAG_NODE = "ecs-kubelet/node"
TAG_FINGERPRINT = "ecs-kubelet/fingerprint"

SUPPORTED_VOLUME_KINDS = ("emptyDir",)

_FAMILY_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")
_FAMILY_MAX_LEN = 255
_FAMILY_DIGEST_LEN = 8
_STARTED_BY_MAX_LEN = 36


@dataclass(frozen=True)
class TaskTranslation:
    """Result of translating one pod.

    - family: deterministic task definition family for the pod identity
    - task_definition: RegisterTaskDefinition payload
    - fingerprint: digest of the payload content, stored as a tag so an
      identical re-registration can be detected
    - container_names: container names in pod order
    """

    family: str
    task_definition: Dict[str, Any]
    fingerprint: str
    container_names: Tuple[str, ...]


def task_family(identity: PodIdentity, prefix: str) -> str:
    """Task definition family for a pod identity.

    Names that need sanitizing or truncating get a digest suffix of the
    identity, so two identities never share a family.
    """
    raw = "__".join((prefix, identity.namespace, identity.name))
    family = _FAMILY_UNSAFE_RE.sub("-", raw)
    if family == raw and len(family) <= _FAMILY_MAX_LEN:
        return family
    digest = hashlib.sha256(f"{identity.namespace}/{identity.name}".encode("utf-8")).hexdigest()[:_FAMILY_DIGEST_LEN]
    return f"{family[: _FAMILY_MAX_LEN - _FAMILY_DIGEST_LEN - 1]}-{digest}"


def log_stream_name(family: str, container_name: str, task_id: str) -> str:
    """Stream name the awslogs driver writes for a container of a task."""
    return f"{family}/{container_name}/{task_id}"


def canonical_payload(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def identity_tags(identity: PodIdentity) -> List[Dict[str, str]]:
    return [
        {"key": TAG_NAMESPACE, "value": identity.namespace},
        {"key": TAG_NAME, "value": identity.name},
        {"key": TAG_UID, "value": identity.uid},
    ]


def validate_pod(pod: Pod) -> None:
    """Reject pod features the back end cannot represent."""
    if not pod.containers:
        raise TranslationError(f"pod {pod.identity} has no containers")
    if pod.host_network:
        raise TranslationError(f"pod {pod.identity}: host networking is not supported")
    if pod.privileged:
        raise TranslationError(f"pod {pod.identity}: privileged containers are not supported")

    volume_names = set()
    for volume in pod.volumes:
        if volume.kind not in SUPPORTED_VOLUME_KINDS:
            raise TranslationError(f"pod {pod.identity}: volume {volume.name!r} of type {volume.kind!r} is not supported")
        if volume.name in volume_names:
            raise TranslationError(f"pod {pod.identity}: duplicate volume name {volume.name!r}")
        volume_names.add(volume.name)

    seen = set()
    for container in pod.containers:
        if not container.name:
            raise TranslationError(f"pod {pod.identity}: container without a name")
        if container.name in seen:
            raise TranslationError(f"pod {pod.identity}: duplicate container name {container.name!r}")
        seen.add(container.name)
        if not container.image:
            raise TranslationError(f"pod {pod.identity}: container {container.name!r} has no image")
        for mount in container.volume_mounts:
            if mount.name not in volume_names:
                raise TranslationError(
                    f"pod {pod.identity}: container {container.name!r} mounts unknown volume {mount.name!r}"
                )


def container_resources(container: Container) -> Tuple[int, int, Optional[int]]:
    """Return (cpu shares, hard memory MiB, soft memory MiB or None).

    Limits are preferred over requests since a task does not share its
    resources with other tasks.
    """
    requests = container.resources.requests or {}
    limits = container.resources.limits or {}

    cpu = resources.DEFAULT_CPU_SHARES
    if "cpu" in limits:
        cpu = resources.cpu_shares(limits["cpu"])
    elif "cpu" in requests:
        cpu = resources.cpu_shares(requests["cpu"])
    if "cpu" in limits and "cpu" in requests and resources.cpu_shares(requests["cpu"]) > cpu:
        raise TranslationError(f"container {container.name!r}: cpu request exceeds limit")

    memory = resources.DEFAULT_MEMORY_MIB
    reservation = None
    if "memory" in requests:
        reservation = resources.memory_mib(requests["memory"])
    if "memory" in limits:
        memory = resources.memory_mib(limits["memory"])
    elif reservation is not None:
        memory = reservation
    if reservation is not None and reservation > memory:
        raise TranslationError(f"container {container.name!r}: memory request exceeds limit")

    return cpu, memory, reservation


def _container_definition(
    container: Container, family: str, config: ProviderConfig
) -> Tuple[Dict[str, Any], int, int]:
    cpu, memory, reservation = container_resources(container)

    definition: Dict[str, Any] = {
        "name": container.name,
        "image": container.image,
        "essential": True,
        "cpu": cpu,
        "memory": memory,
        "logConfiguration": {
            "logDriver": "awslogs",
            "options": {
                "awslogs-group": config.log_group,
                "awslogs-region": config.region,
                "awslogs-stream-prefix": family,
            },
        },
    }
    if reservation is not None:
        definition["memoryReservation"] = reservation
    if container.command:
        definition["entryPoint"] = list(container.command)
    if container.args:
        definition["command"] = list(container.args)
    if container.env:
        definition["environment"] = [{"name": e.name, "value": e.value} for e in container.env]
    if container.working_dir:
        definition["workingDirectory"] = container.working_dir
    if container.ports:
        definition["portMappings"] = [
            {"containerPort": p.container_port, "protocol": p.protocol.lower()} for p in container.ports
        ]
    if container.volume_mounts:
        definition["mountPoints"] = [
            {"sourceVolume": m.name, "containerPath": m.mount_path, "readOnly": m.read_only}
            for m in container.volume_mounts
        ]
    return definition, cpu, memory


def translate_pod(pod: Pod, config: ProviderConfig) -> TaskTranslation:
    """Build the task definition for a pod.

    Raises:
        TranslationError: if any part of the pod cannot be represented
    """
    validate_pod(pod)
    family = task_family(pod.identity, config.task_family_prefix)

    definitions = []
    total_cpu = 0
    total_memory = 0
    for container in pod.containers:
        definition, cpu, memory = _container_definition(container, family, config)
        definitions.append(definition)
        total_cpu += cpu
        total_memory += memory

    task_cpu, task_memory = resources.fargate_task_size(total_cpu, total_memory)

    payload: Dict[str, Any] = {
        "family": family,
        "networkMode": "awsvpc",
        "requiresCompatibilities": ["FARGATE"],
        "cpu": str(task_cpu),
        "memory": str(task_memory),
        "executionRoleArn": config.execution_role_arn,
        "containerDefinitions": definitions,
    }
    if pod.volumes:
        payload["volumes"] = [{"name": v.name} for v in pod.volumes]

    fingerprint = hashlib.sha256(canonical_payload(payload)).hexdigest()
    payload["tags"] = identity_tags(pod.identity) + [{"key": TAG_FINGERPRINT, "value": fingerprint}]

    logger.debug(
        "Translated pod %s: family=%s cpu=%s memory=%s containers=%d",
        pod.identity,
        family,
        task_cpu,
        task_memory,
        len(definitions),
    )
    return TaskTranslation(
        family=family,
        task_definition=payload,
        fingerprint=fingerprint,
        container_names=tuple(c.name for c in pod.containers),
    )


def build_run_task_request(
    pod: Pod,
    task_definition_arn: str,
    config: ProviderConfig,
    started_by: str,
) -> Dict[str, Any]:
    """Build the RunTask payload launching one task of the pod's definition."""
    subnets: Sequence[str] = list(config.subnets)
    awsvpc: Dict[str, Any] = {
        "subnets": subnets,
        "assignPublicIp": "ENABLED" if config.assign_public_ip else "DISABLED",
    }
    if config.security_groups:
        awsvpc["securityGroups"] = list(config.security_groups)

    return {
        "cluster": config.cluster,
        "taskDefinition": task_definition_arn,
        "count": 1,
        "launchType": "FARGATE",
        "platformVersion": config.platform_version,
        "startedBy": started_by[:_STARTED_BY_MAX_LEN],
        "networkConfiguration": {"awsvpcConfiguration": awsvpc},
        "enableECSManagedTags": True,
        "tags": identity_tags(pod.identity) + [{"key": TAG_NODE, "value": started_by}],
    }


def build_task_definition(pod: Pod, config: ProviderConfig) -> Dict[str, Any]:
    """RegisterTaskDefinition payload for a pod, tags included."""
    return translate_pod(pod, config).task_definition
