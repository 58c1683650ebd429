"""ecs-kubelet: run front-end pods as ECS Fargate tasks."""

from .config import ConfigError, ProviderConfig, load_config
from .provider import FargateProvider, NodeInfo, wait_for_phase

__all__ = [
    "ConfigError",
    "FargateProvider",
    "NodeInfo",
    "ProviderConfig",
    "load_config",
    "wait_for_phase",
]

__version__ = "0.1.0"
