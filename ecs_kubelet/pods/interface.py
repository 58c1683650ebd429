from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

# DescribeTasks accepts at most this many task ARNs per call
DESCRIBE_BATCH_SIZE = 100


@dataclass(frozen=True)
class PodIdentity:
    """Front-end identity of a workload.

    - namespace: front-end namespace
    - name: pod name, unique within its namespace
    - uid: unique ID assigned by the front end
    """

    namespace: str
    name: str
    uid: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: str = ""


@dataclass(frozen=True)
class ResourceRequirements:
    """Requests (soft) and limits (hard) as quantity strings keyed by "cpu"/"memory"."""

    requests: Mapping[str, str] = field(default_factory=dict)
    limits: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ContainerPort:
    container_port: int
    protocol: str = "TCP"


@dataclass(frozen=True)
class VolumeMount:
    name: str
    mount_path: str
    read_only: bool = False


@dataclass(frozen=True)
class Container:
    """One container of a pod, as the front end describes it."""

    name: str
    image: str
    command: Sequence[str] = ()
    args: Sequence[str] = ()
    env: Sequence[EnvVar] = ()
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    working_dir: Optional[str] = None
    ports: Sequence[ContainerPort] = ()
    volume_mounts: Sequence[VolumeMount] = ()


@dataclass(frozen=True)
class Volume:
    """Pod volume. Only the volume type matters to the translator."""

    name: str
    kind: str = "emptyDir"


class PodPhase(str, enum.Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (PodPhase.SUCCEEDED, PodPhase.FAILED)


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    state: str  # "waiting", "running", "terminated"
    image: str = ""
    exit_code: Optional[int] = None
    reason: Optional[str] = None
    ready: bool = False


@dataclass(frozen=True)
class PodStatus:
    """Front-end status derived from back-end task state."""

    phase: PodPhase
    reason: Optional[str] = None
    message: Optional[str] = None
    pod_ip: Optional[str] = None
    started_at: Optional[datetime] = None
    container_statuses: Sequence[ContainerStatus] = ()


@dataclass(frozen=True)
class Pod:
    """Workload as seen by the front end; status is attached on output only."""

    identity: PodIdentity
    containers: Sequence[Container]
    volumes: Sequence[Volume] = ()
    host_network: bool = False
    privileged: bool = False
    labels: Mapping[str, str] = field(default_factory=dict)
    status: Optional[PodStatus] = None

    @property
    def namespace(self) -> str:
        return self.identity.namespace

    @property
    def name(self) -> str:
        return self.identity.name


@dataclass(frozen=True)
class TaskHandle:
    """Opaque reference to a launched back-end task."""

    task_arn: str

    @property
    def task_id(self) -> str:
        return self.task_arn.split("/")[-1]


@dataclass(frozen=True)
class TaskDescription:
    """Back-end view of one task, reduced to what reconciliation needs."""

    task_arn: str
    last_status: str
    desired_status: str
    task_definition_arn: str = ""
    containers: Sequence[Dict[str, Any]] = ()
    stop_code: Optional[str] = None
    stopped_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    private_ip: Optional[str] = None
    tags: Mapping[str, str] = field(default_factory=dict)


class TaskBackend(Protocol):
    """Managed container-execution service used by the lifecycle manager.

    Implementations translate transport failures into TransientError or
    BackendError; they never retry unboundedly.
    """

    def register_task_definition(self, payload: Dict[str, Any]) -> str:  # pragma: no cover - protocol
        """Register a task definition and return its ARN."""
        ...

    def latest_task_definition(self, family: str) -> Optional[Dict[str, Any]]:  # pragma: no cover - protocol
        """Return the latest active revision of a family, or None."""
        ...

    def run_task(self, payload: Dict[str, Any]) -> TaskHandle:  # pragma: no cover - protocol
        """Launch exactly one task."""
        ...

    def stop_task(self, cluster: str, handle: TaskHandle, reason: str) -> bool:  # pragma: no cover - protocol
        """Request a stop. Returns False when the task does not exist."""
        ...

    def describe_tasks(
        self, cluster: str, handles: Sequence[TaskHandle]
    ) -> tuple[Dict[str, TaskDescription], List[str]]:  # pragma: no cover - protocol
        """Describe tasks; returns (descriptions by ARN, missing ARNs)."""
        ...

    def list_tasks(self, cluster: str, started_by: str) -> List[TaskHandle]:  # pragma: no cover - protocol
        """List tasks in a cluster launched with the given startedBy value."""
        ...


class LogBackend(Protocol):
    """Back-end log store."""

    def tail_events(
        self, log_group: str, log_stream: str, limit: Optional[int]
    ) -> Optional[List[str]]:  # pragma: no cover - protocol
        """Most recent messages in chronological order, or None if the stream is absent."""
        ...


class ProviderError(RuntimeError):
    """Base for every failure surfaced by the provider."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class TranslationError(ProviderError):
    """Pod cannot be represented as a back-end task. Permanent."""


class AlreadyExists(ProviderError):
    """A task is already tracked for the pod identity."""


class NotFound(ProviderError):
    """No task is tracked for the pod identity."""


class TransientError(ProviderError):
    """Throttling or network failure; safe to retry with backoff."""


class BackendError(ProviderError):
    """Non-retryable failure reported by the back end."""


class PollTimeout(ProviderError):
    """Caller-supplied deadline expired while waiting for convergence."""
