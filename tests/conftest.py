"""Shared fixtures: in-memory ECS and log store fakes."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest

from ecs_kubelet.config import ProviderConfig
from ecs_kubelet.pods import (
    BackendError,
    Container,
    Pod,
    PodIdentity,
    ResourceRequirements,
    TaskDescription,
    TaskHandle,
)
from ecs_kubelet.provider import FargateProvider, NodeInfo

ACCOUNT = "123456789012"
REGION = "us-east-1"
CLUSTER = "test-cluster"


class FakeTaskBackend:
    """In-memory stand-in for ECS.

    Tasks start PENDING; tests move them along with set_running/set_exited.
    Every call is appended to `calls` as (method, args).
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.definitions: Dict[str, List[Dict[str, Any]]] = {}
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.run_error: Optional[BaseException] = None
        self._ids = itertools.count(1)

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    # --- TaskBackend ---

    def register_task_definition(self, payload: Dict[str, Any]) -> str:
        self.calls.append(("register_task_definition", payload))
        revisions = self.definitions.setdefault(payload["family"], [])
        arn = f"arn:aws:ecs:{REGION}:{ACCOUNT}:task-definition/{payload['family']}:{len(revisions) + 1}"
        revisions.append({"taskDefinitionArn": arn, "payload": payload})
        return arn

    def latest_task_definition(self, family: str) -> Optional[Dict[str, Any]]:
        self.calls.append(("latest_task_definition", family))
        revisions = self.definitions.get(family)
        if not revisions:
            return None
        latest = revisions[-1]
        tags = {t["key"]: t["value"] for t in latest["payload"].get("tags", [])}
        return {"taskDefinitionArn": latest["taskDefinitionArn"], "tags": tags}

    def run_task(self, payload: Dict[str, Any]) -> TaskHandle:
        self.calls.append(("run_task", payload))
        if self.run_error is not None:
            raise self.run_error
        definition = self._definition(payload["taskDefinition"])
        if definition is None:
            raise BackendError(f"unknown task definition {payload['taskDefinition']}")
        task_id = f"{next(self._ids):032x}"
        arn = f"arn:aws:ecs:{REGION}:{ACCOUNT}:task/{payload['cluster']}/{task_id}"
        self.tasks[arn] = {
            "cluster": payload["cluster"],
            "startedBy": payload.get("startedBy", ""),
            "lastStatus": "PROVISIONING",
            "desiredStatus": "RUNNING",
            "taskDefinitionArn": payload["taskDefinition"],
            "stopCode": None,
            "stoppedReason": None,
            "startedAt": None,
            "tags": {t["key"]: t["value"] for t in payload.get("tags", [])},
            "containers": [
                {"name": c["name"], "image": c["image"], "lastStatus": "PENDING", "exitCode": None, "reason": None}
                for c in definition["payload"]["containerDefinitions"]
            ],
        }
        return TaskHandle(task_arn=arn)

    def stop_task(self, cluster: str, handle: TaskHandle, reason: str) -> bool:
        self.calls.append(("stop_task", handle.task_arn, reason))
        task = self.tasks.get(handle.task_arn)
        if task is None:
            return False
        task["desiredStatus"] = "STOPPED"
        task["stoppedReason"] = reason
        return True

    def describe_tasks(self, cluster: str, handles: Sequence[TaskHandle]):
        self.calls.append(("describe_tasks", [h.task_arn for h in handles]))
        found: Dict[str, TaskDescription] = {}
        missing: List[str] = []
        for handle in handles:
            task = self.tasks.get(handle.task_arn)
            if task is None:
                missing.append(handle.task_arn)
                continue
            found[handle.task_arn] = TaskDescription(
                task_arn=handle.task_arn,
                last_status=task["lastStatus"],
                desired_status=task["desiredStatus"],
                task_definition_arn=task["taskDefinitionArn"],
                containers=[dict(c) for c in task["containers"]],
                stop_code=task["stopCode"],
                stopped_reason=task["stoppedReason"],
                started_at=task["startedAt"],
                private_ip="10.0.0.10" if task["lastStatus"] == "RUNNING" else None,
                tags=dict(task["tags"]),
            )
        return found, missing

    def list_tasks(self, cluster: str, started_by: str) -> List[TaskHandle]:
        self.calls.append(("list_tasks", cluster, started_by))
        return [
            TaskHandle(task_arn=arn)
            for arn, task in self.tasks.items()
            if task["cluster"] == cluster and task["startedBy"] == started_by
        ]

    # --- test controls ---

    def set_running(self, arn: str) -> None:
        task = self.tasks[arn]
        task["lastStatus"] = "RUNNING"
        task["startedAt"] = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for c in task["containers"]:
            c["lastStatus"] = "RUNNING"

    def set_exited(self, arn: str, exit_code: Optional[int] = 0, **per_container: Optional[int]) -> None:
        task = self.tasks[arn]
        task["lastStatus"] = "STOPPED"
        task["desiredStatus"] = "STOPPED"
        task["stopCode"] = task["stopCode"] or "EssentialContainerExited"
        for c in task["containers"]:
            c["lastStatus"] = "STOPPED"
            c["exitCode"] = per_container.get(c["name"], exit_code)

    def forget(self, arn: str) -> None:
        del self.tasks[arn]

    def _definition(self, arn: str) -> Optional[Dict[str, Any]]:
        for revisions in self.definitions.values():
            for revision in revisions:
                if revision["taskDefinitionArn"] == arn:
                    return revision
        return None


class FakeLogBackend:
    """In-memory log store keyed by (group, stream)."""

    def __init__(self) -> None:
        self.streams: Dict[tuple, List[str]] = {}
        self.calls: List[tuple] = []

    def put(self, group: str, stream: str, *messages: str) -> None:
        self.streams.setdefault((group, stream), []).extend(messages)

    def tail_events(self, log_group: str, log_stream: str, limit: Optional[int]) -> Optional[List[str]]:
        self.calls.append((log_group, log_stream, limit))
        messages = self.streams.get((log_group, log_stream))
        if messages is None:
            return None
        return list(messages[-limit:]) if limit else list(messages)


@pytest.fixture
def config():
    return ProviderConfig(
        region=REGION,
        cluster=CLUSTER,
        log_group="/ecs/ecs-kubelet",
        execution_role_arn=f"arn:aws:iam::{ACCOUNT}:role/ecsTaskExecutionRole",
        subnets=("subnet-0a1b2c3d",),
        security_groups=("sg-0123456789",),
        status_rate=1000.0,
        logs_rate=1000.0,
    )


@pytest.fixture
def fake_ecs():
    return FakeTaskBackend()


@pytest.fixture
def fake_logs():
    return FakeLogBackend()


@pytest.fixture
def node():
    return NodeInfo(name="vk-fargate", internal_ip="10.0.0.1")


@pytest.fixture
def provider(config, node, fake_ecs, fake_logs):
    return FargateProvider(config, node, task_backend=fake_ecs, log_backend=fake_logs)


@pytest.fixture
def make_pod():
    """Factory for simple pods: make_pod("web", containers=[...])."""

    def _make_pod(
        name: str = "test-pod",
        namespace: str = "default",
        containers: Optional[Sequence[Container]] = None,
        **kwargs: Any,
    ) -> Pod:
        if containers is None:
            containers = [
                Container(
                    name="busybox",
                    image="busybox",
                    command=["sh", "-c"],
                    args=["echo Started; sleep 3600"],
                    resources=ResourceRequirements(requests={"cpu": "200", "memory": "450Mi"}),
                )
            ]
        return Pod(
            identity=PodIdentity(namespace=namespace, name=name, uid=f"uid-{namespace}-{name}"),
            containers=tuple(containers),
            **kwargs,
        )

    return _make_pod
