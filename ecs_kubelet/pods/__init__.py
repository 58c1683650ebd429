from .interface import (
    AlreadyExists,
    BackendError,
    Container,
    ContainerPort,
    ContainerStatus,
    EnvVar,
    LogBackend,
    NotFound,
    Pod,
    PodIdentity,
    PodPhase,
    PodStatus,
    PollTimeout,
    ProviderError,
    ResourceRequirements,
    TaskBackend,
    TaskDescription,
    TaskHandle,
    TransientError,
    TranslationError,
    Volume,
    VolumeMount,
)

__all__ = [
    "AlreadyExists",
    "BackendError",
    "Container",
    "ContainerPort",
    "ContainerStatus",
    "EnvVar",
    "LogBackend",
    "NotFound",
    "Pod",
    "PodIdentity",
    "PodPhase",
    "PodStatus",
    "PollTimeout",
    "ProviderError",
    "ResourceRequirements",
    "TaskBackend",
    "TaskDescription",
    "TaskHandle",
    "TransientError",
    "TranslationError",
    "Volume",
    "VolumeMount",
]
