from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..pods.interface import (
    DESCRIBE_BATCH_SIZE,
    BackendError,
    LogBackend,
    ProviderError,
    TaskBackend,
    TaskDescription,
    TaskHandle,
    TransientError,
)

logger = logging.getLogger(__name__)

# GetLogEvents returns at most this many events per call
MAX_LOG_EVENTS = 10000

_TRANSIENT_ERROR_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "ServerException",
        "ServiceUnavailable",
        "ServiceUnavailableException",
    }
)

_NETWORK_ERRORS = (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _error_message(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Message", "")


def wrap_aws_error(action: str, exc: BaseException) -> ProviderError:
    """Classify a botocore failure as transient or permanent."""
    if isinstance(exc, ClientError):
        code = _error_code(exc)
        if code in _TRANSIENT_ERROR_CODES:
            return TransientError(f"{action} throttled or unavailable ({code})", cause=exc)
        return BackendError(f"{action} failed ({code}): {_error_message(exc)}", cause=exc)
    if isinstance(exc, _NETWORK_ERRORS):
        return TransientError(f"{action} failed: {exc}", cause=exc)
    return BackendError(f"{action} failed: {exc}", cause=exc)


def _client_config(max_attempts: int) -> Config:
    # botocore's own bounded retry is the only retry performed here
    return Config(retries={"max_attempts": max_attempts, "mode": "standard"})


def _tags_to_dict(tags: Optional[Sequence[Dict[str, str]]]) -> Dict[str, str]:
    return {t["key"]: t.get("value", "") for t in tags or () if "key" in t}


def _private_ip(task: Dict[str, Any]) -> Optional[str]:
    for container in task.get("containers") or []:
        for iface in container.get("networkInterfaces") or []:
            if iface.get("privateIpv4Address"):
                return iface["privateIpv4Address"]
    for attachment in task.get("attachments") or []:
        for detail in attachment.get("details") or []:
            if detail.get("name") == "privateIPv4Address":
                return detail.get("value")
    return None


def _task_description(task: Dict[str, Any]) -> TaskDescription:
    containers = [
        {
            "name": c.get("name", ""),
            "image": c.get("image", ""),
            "lastStatus": c.get("lastStatus", ""),
            "exitCode": c.get("exitCode"),
            "reason": c.get("reason"),
        }
        for c in task.get("containers") or []
    ]
    return TaskDescription(
        task_arn=task["taskArn"],
        last_status=task.get("lastStatus", ""),
        desired_status=task.get("desiredStatus", ""),
        task_definition_arn=task.get("taskDefinitionArn", ""),
        containers=containers,
        stop_code=task.get("stopCode"),
        stopped_reason=task.get("stoppedReason"),
        started_at=task.get("startedAt"),
        private_ip=_private_ip(task),
        tags=_tags_to_dict(task.get("tags")),
    )


class ECSTaskBackend(TaskBackend):
    """boto3-backed implementation of TaskBackend.

    Boundary rules:
    - Only this module talks to the ECS and CloudWatch Logs APIs.
    - Upstream callers depend only on the `TaskBackend`/`LogBackend` protocols.
    - No pod-specific logic: translation from pods to payloads lives in translate.
    """

    def __init__(
        self,
        *,
        region: str,
        max_attempts: int = 5,
        session: Optional[boto3.session.Session] = None,
        client: Any = None,
    ) -> None:
        self._region = region
        self._max_attempts = max_attempts
        self._session = session
        # Lazy-init client on first use to make tests lighter
        self._client = client

    def register_task_definition(self, payload: Dict[str, Any]) -> str:
        self._ensure_client()
        try:
            resp = self._client.register_task_definition(**payload)
        except (ClientError, *_NETWORK_ERRORS) as exc:
            raise wrap_aws_error("RegisterTaskDefinition", exc)
        arn = resp["taskDefinition"]["taskDefinitionArn"]
        logger.info("Registered task definition %s", arn)
        return arn

    def latest_task_definition(self, family: str) -> Optional[Dict[str, Any]]:
        self._ensure_client()
        try:
            resp = self._client.describe_task_definition(taskDefinition=family, include=["TAGS"])
        except ClientError as exc:
            # Unknown families are reported as a ClientException
            if _error_code(exc) == "ClientException":
                return None
            raise wrap_aws_error("DescribeTaskDefinition", exc)
        except _NETWORK_ERRORS as exc:
            raise wrap_aws_error("DescribeTaskDefinition", exc)

        definition = resp.get("taskDefinition") or {}
        if definition.get("status") != "ACTIVE":
            return None
        return {
            "taskDefinitionArn": definition["taskDefinitionArn"],
            "tags": _tags_to_dict(resp.get("tags")),
        }

    def run_task(self, payload: Dict[str, Any]) -> TaskHandle:
        self._ensure_client()
        try:
            resp = self._client.run_task(**payload)
        except (ClientError, *_NETWORK_ERRORS) as exc:
            raise wrap_aws_error("RunTask", exc)

        failures = resp.get("failures") or []
        if failures:
            raise BackendError(f"ECS run task failed: {failures}")

        tasks = resp.get("tasks") or []
        if not tasks:
            raise BackendError("ECS run task returned no tasks")
        if len(tasks) > 1:
            raise BackendError("ECS run task returned multiple tasks, expected only one")
        return TaskHandle(task_arn=tasks[0]["taskArn"])

    def stop_task(self, cluster: str, handle: TaskHandle, reason: str) -> bool:
        self._ensure_client()
        try:
            self._client.stop_task(cluster=cluster, task=handle.task_arn, reason=reason)
        except ClientError as exc:
            if _error_code(exc) == "InvalidParameterException" and "not found" in _error_message(exc).lower():
                logger.warning("Task %s not found while stopping", handle.task_arn)
                return False
            raise wrap_aws_error("StopTask", exc)
        except _NETWORK_ERRORS as exc:
            raise wrap_aws_error("StopTask", exc)
        return True

    def describe_tasks(
        self, cluster: str, handles: Sequence[TaskHandle]
    ) -> Tuple[Dict[str, TaskDescription], List[str]]:
        self._ensure_client()
        found: Dict[str, TaskDescription] = {}
        missing: List[str] = []
        arns = [h.task_arn for h in handles]
        for start in range(0, len(arns), DESCRIBE_BATCH_SIZE):
            batch = arns[start : start + DESCRIBE_BATCH_SIZE]
            try:
                resp = self._client.describe_tasks(cluster=cluster, tasks=batch, include=["TAGS"])
            except (ClientError, *_NETWORK_ERRORS) as exc:
                raise wrap_aws_error("DescribeTasks", exc)
            for task in resp.get("tasks") or []:
                found[task["taskArn"]] = _task_description(task)
            for failure in resp.get("failures") or []:
                if failure.get("reason") == "MISSING":
                    missing.append(failure["arn"])
                else:
                    logger.warning("Describe failure for %s: %s", failure.get("arn"), failure.get("reason"))
        return found, missing

    def list_tasks(self, cluster: str, started_by: str) -> List[TaskHandle]:
        self._ensure_client()
        handles: List[TaskHandle] = []
        try:
            paginator = self._client.get_paginator("list_tasks")
            for page in paginator.paginate(cluster=cluster, startedBy=started_by):
                handles.extend(TaskHandle(task_arn=arn) for arn in page.get("taskArns") or [])
        except (ClientError, *_NETWORK_ERRORS) as exc:
            raise wrap_aws_error("ListTasks", exc)
        return handles

    def _ensure_client(self) -> None:
        if self._client is None:
            session = self._session or boto3.Session(region_name=self._region)
            self._client = session.client("ecs", config=_client_config(self._max_attempts))


class CloudWatchLogBackend(LogBackend):
    """boto3-backed implementation of LogBackend over CloudWatch Logs."""

    def __init__(
        self,
        *,
        region: str,
        max_attempts: int = 5,
        session: Optional[boto3.session.Session] = None,
        client: Any = None,
    ) -> None:
        self._region = region
        self._max_attempts = max_attempts
        self._session = session
        self._client = client

    def tail_events(self, log_group: str, log_stream: str, limit: Optional[int]) -> Optional[List[str]]:
        self._ensure_client()
        kwargs: Dict[str, Any] = {
            "logGroupName": log_group,
            "logStreamName": log_stream,
            "startFromHead": False,
        }
        if limit:
            kwargs["limit"] = min(limit, MAX_LOG_EVENTS)
        try:
            resp = self._client.get_log_events(**kwargs)
        except ClientError as exc:
            if _error_code(exc) == "ResourceNotFoundException":
                logger.debug("Log stream %s/%s does not exist yet", log_group, log_stream)
                return None
            raise wrap_aws_error("GetLogEvents", exc)
        except _NETWORK_ERRORS as exc:
            raise wrap_aws_error("GetLogEvents", exc)

        # Events come back in chronological order
        return [event.get("message", "") for event in resp.get("events") or []]

    def _ensure_client(self) -> None:
        if self._client is None:
            session = self._session or boto3.Session(region_name=self._region)
            self._client = session.client("logs", config=_client_config(self._max_attempts))
