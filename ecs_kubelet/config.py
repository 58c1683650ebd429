"""Configuration management for ecs-kubelet.

Settings are read from a TOML provider config file with CamelCase keys,
with per-key environment variable overrides. Lookup order for each key:
environment variable, config file, default.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ECS_KUBELET_CONFIG"
_ENV_PREFIX = "ECS_KUBELET_"

# config file key -> environment variable suffix
_ENV_NAMES = {
    "Region": "REGION",
    "Cluster": "CLUSTER",
    "CloudWatchLogGroup": "CLOUDWATCH_LOG_GROUP",
    "ExecutionRoleArn": "EXECUTION_ROLE_ARN",
    "Subnets": "SUBNETS",
    "SecurityGroups": "SECURITY_GROUPS",
    "AssignPublicIPv4Address": "ASSIGN_PUBLIC_IP",
    "PlatformVersion": "PLATFORM_VERSION",
    "TaskFamilyPrefix": "TASK_FAMILY_PREFIX",
    "CPU": "CPU",
    "Memory": "MEMORY",
    "Pods": "PODS",
    "StatusRate": "STATUS_RATE",
    "LogsRate": "LOGS_RATE",
    "MaxAttempts": "MAX_ATTEMPTS",
    "MonitoringEnabled": "MONITORING_ENABLED",
    "MonitoringBind": "MONITORING_BIND",
}

_REQUIRED_KEYS = ("Region", "Cluster", "CloudWatchLogGroup", "ExecutionRoleArn", "Subnets")


class ConfigError(ValueError):
    """Raised when the provider config is missing or malformed."""


@dataclass(frozen=True)
class ProviderConfig:
    """Static provider configuration.

    All identifiers are pre-provisioned: the provider never creates the
    cluster, log group, role or network placement it is given.
    """

    region: str
    cluster: str
    log_group: str
    execution_role_arn: str
    subnets: Tuple[str, ...]
    security_groups: Tuple[str, ...] = ()
    assign_public_ip: bool = True
    platform_version: str = "LATEST"
    task_family_prefix: str = "ecs-kubelet"
    capacity_cpu: str = "20"
    capacity_memory: str = "40Gi"
    capacity_pods: str = "20"
    status_rate: float = 5.0
    logs_rate: float = 5.0
    max_attempts: int = 5
    monitoring_enabled: bool = False
    monitoring_bind: str = "127.0.0.1:10255"


def _read_config_file(config_file: Optional[str]) -> Dict[str, Any]:
    """Parse a TOML provider config file.

    Args:
        config_file: Path to the file, or None for no file

    Returns:
        Dict of top-level keys (empty when no file is given)
    """
    if not config_file:
        logger.debug("No provider config file given, using environment and defaults")
        return {}
    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {config_file}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in config file {config_file}: {exc}") from exc


def _get_config_value(
    values: Mapping[str, Any],
    key: str,
    default: Any,
    converter: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Get config value with fallback chain: env var -> config file -> default.

    Invalid values are logged and replaced by the default.
    """
    env_var = _ENV_PREFIX + _ENV_NAMES[key]
    env_value = os.environ.get(env_var)
    if env_value is not None:
        if converter:
            try:
                return converter(env_value)
            except (ValueError, TypeError):
                logger.warning("Invalid value for %s: %s, using default", env_var, env_value)
                return default
        return env_value

    value = values.get(key)
    if value is not None:
        if converter:
            try:
                return converter(value)
            except (ValueError, TypeError):
                logger.warning("Invalid value for config key %s: %s, using default", key, value)
                return default
        return value

    return default


def _parse_bool(value: Any) -> bool:
    """Parse boolean value from config (string or bool).

    Accepts: True, "true", "True", "1", "yes", "on" -> True
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_list(value: Any) -> Tuple[str, ...]:
    """Parse a list of identifiers.

    Accepts:
    - List: ["subnet-1", "subnet-2"]
    - String (space or comma separated): "subnet-1,subnet-2"
    """
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    if isinstance(value, str):
        return tuple(item.strip() for item in value.replace(",", " ").split() if item.strip())
    raise TypeError(f"expected list or string, got {type(value).__name__}")


def _parse_positive_float(value: Any) -> float:
    result = float(value)
    if result <= 0:
        raise ValueError("must be positive")
    return result


def _parse_bind(value: Any) -> str:
    # Validate format: "host:port" with a numeric port
    if not isinstance(value, str) or ":" not in value:
        raise ValueError("expected host:port")
    port = int(value.rpartition(":")[2])
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return value


def load_config(config_file: Optional[str] = None) -> ProviderConfig:
    """Build a ProviderConfig from file, environment and defaults.

    Args:
        config_file: Optional TOML file path; defaults to $ECS_KUBELET_CONFIG

    Raises:
        ConfigError: if a required key is missing or the file is unreadable
    """
    if config_file is None:
        config_file = os.environ.get(CONFIG_ENV_VAR)
    values = _read_config_file(config_file)

    missing = [key for key in _REQUIRED_KEYS if not _get_config_value(values, key, None)]
    if missing:
        raise ConfigError(f"missing required config keys: {', '.join(missing)}")

    subnets = _get_config_value(values, "Subnets", (), converter=_parse_list)
    if not subnets:
        raise ConfigError("at least one subnet is required")

    config = ProviderConfig(
        region=str(_get_config_value(values, "Region", None)),
        cluster=str(_get_config_value(values, "Cluster", None)),
        log_group=str(_get_config_value(values, "CloudWatchLogGroup", None)),
        execution_role_arn=str(_get_config_value(values, "ExecutionRoleArn", None)),
        subnets=subnets,
        security_groups=_get_config_value(values, "SecurityGroups", (), converter=_parse_list),
        assign_public_ip=_get_config_value(values, "AssignPublicIPv4Address", True, converter=_parse_bool),
        platform_version=str(_get_config_value(values, "PlatformVersion", "LATEST")),
        task_family_prefix=str(_get_config_value(values, "TaskFamilyPrefix", "ecs-kubelet")),
        capacity_cpu=str(_get_config_value(values, "CPU", "20")),
        capacity_memory=str(_get_config_value(values, "Memory", "40Gi")),
        capacity_pods=str(_get_config_value(values, "Pods", "20")),
        status_rate=_get_config_value(values, "StatusRate", 5.0, converter=_parse_positive_float),
        logs_rate=_get_config_value(values, "LogsRate", 5.0, converter=_parse_positive_float),
        max_attempts=_get_config_value(values, "MaxAttempts", 5, converter=int),
        monitoring_enabled=_get_config_value(values, "MonitoringEnabled", False, converter=_parse_bool),
        monitoring_bind=_get_config_value(values, "MonitoringBind", "127.0.0.1:10255", converter=_parse_bind),
    )
    logger.debug(
        "Loaded provider config: region=%s cluster=%s log_group=%s subnets=%s",
        config.region,
        config.cluster,
        config.log_group,
        ",".join(config.subnets),
    )
    return config
