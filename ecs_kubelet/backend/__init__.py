from .ecs import CloudWatchLogBackend, ECSTaskBackend, wrap_aws_error

__all__ = [
    "CloudWatchLogBackend",
    "ECSTaskBackend",
    "wrap_aws_error",
]
