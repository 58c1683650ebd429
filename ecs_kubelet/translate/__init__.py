"""Translators turn pods into ECS task definitions and launch requests.

Boundary rules:
- No boto3 imports here; translation is pure and deterministic.
- Every pod feature the back end cannot represent raises TranslationError.
"""

from .resources import cpu_shares, fargate_task_size, memory_mib, parse_quantity
from .task_definition import (
    TaskTranslation,
    build_run_task_request,
    build_task_definition,
    canonical_payload,
    log_stream_name,
    task_family,
    translate_pod,
)

__all__ = [
    "TaskTranslation",
    "build_run_task_request",
    "build_task_definition",
    "canonical_payload",
    "cpu_shares",
    "fargate_task_size",
    "log_stream_name",
    "memory_mib",
    "parse_quantity",
    "task_family",
    "translate_pod",
]
