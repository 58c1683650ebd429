"""Resource quantity conversion into ECS units.

CPU quantities are ECS CPU shares (1024 shares = 1 vCPU). Memory quantities
are bytes and are converted to whole MiB, the unit ECS accepts.
"""

from __future__ import annotations

import re
from decimal import ROUND_CEILING, Decimal, DecimalException
from typing import Dict, List, Optional, Tuple

from ..pods.interface import TranslationError

MIB = 1024 * 1024

MIN_CPU_SHARES = 2
MIN_MEMORY_MIB = 6
MAX_TASK_CPU_SHARES = 16384
MAX_TASK_MEMORY_MIB = 122880

DEFAULT_CPU_SHARES = 256
DEFAULT_MEMORY_MIB = 512

_BINARY_SUFFIXES = {
    "Ki": Decimal(2) ** 10,
    "Mi": Decimal(2) ** 20,
    "Gi": Decimal(2) ** 30,
    "Ti": Decimal(2) ** 40,
    "Pi": Decimal(2) ** 50,
    "Ei": Decimal(2) ** 60,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

_QUANTITY_RE = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+))(?:([eE][+-]?\d+)|(Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE])?)$")


def _fargate_sizes() -> Dict[int, List[int]]:
    sizes = {
        256: [512, 1024, 2048],
        512: list(range(1024, 4096 + 1, 1024)),
        1024: list(range(2048, 8192 + 1, 1024)),
        2048: list(range(4096, 16384 + 1, 1024)),
        4096: list(range(8192, 30720 + 1, 1024)),
        8192: list(range(16384, 61440 + 1, 4096)),
        16384: list(range(32768, 122880 + 1, 8192)),
    }
    return sizes


# Supported task-level CPU shares -> memory MiB combinations, ascending.
FARGATE_TASK_SIZES = _fargate_sizes()


def parse_quantity(value: str) -> Decimal:
    """Parse a Kubernetes-style quantity string ("250m", "450Mi", "1e3")."""
    text = str(value).strip()
    match = _QUANTITY_RE.match(text)
    if not match:
        raise TranslationError(f"invalid resource quantity: {value!r}")
    number, exponent, suffix = match.groups()
    try:
        amount = Decimal(number)
        if exponent:
            return amount * (Decimal(10) ** int(exponent[1:]))
        if suffix in _BINARY_SUFFIXES:
            return amount * _BINARY_SUFFIXES[suffix]
        return amount * _DECIMAL_SUFFIXES[suffix or ""]
    except DecimalException as exc:
        raise TranslationError(f"resource quantity out of range: {value!r}", cause=exc)


def cpu_shares(value: str) -> int:
    """Convert a CPU quantity to integer ECS CPU shares.

    Raises:
        TranslationError: for fractional shares, values under the minimum
            or above the per-task ceiling
    """
    amount = parse_quantity(value)
    if amount != amount.to_integral_value():
        raise TranslationError(f"cpu {value!r} is not a whole number of cpu shares")
    shares = int(amount)
    if shares < MIN_CPU_SHARES:
        raise TranslationError(f"cpu {value!r} is below the minimum of {MIN_CPU_SHARES} cpu shares")
    if shares > MAX_TASK_CPU_SHARES:
        raise TranslationError(f"cpu {value!r} exceeds the per-task maximum of {MAX_TASK_CPU_SHARES} cpu shares")
    return shares


def memory_mib(value: str) -> int:
    """Convert a memory quantity in bytes to whole MiB, rounding up.

    Raises:
        TranslationError: for values under the minimum or above the per-task ceiling
    """
    amount = parse_quantity(value)
    if amount <= 0:
        raise TranslationError(f"memory {value!r} must be positive")
    mib = int((amount / MIB).to_integral_value(rounding=ROUND_CEILING))
    if amount < MIN_MEMORY_MIB * MIB:
        raise TranslationError(f"memory {value!r} is below the minimum of {MIN_MEMORY_MIB}Mi")
    if mib > MAX_TASK_MEMORY_MIB:
        raise TranslationError(f"memory {value!r} exceeds the per-task maximum of {MAX_TASK_MEMORY_MIB}Mi")
    return mib


def fargate_task_size(cpu: int, memory: int) -> Tuple[int, int]:
    """Smallest supported task (cpu shares, memory MiB) holding the given totals."""
    if cpu > MAX_TASK_CPU_SHARES:
        raise TranslationError(f"total cpu {cpu} exceeds the per-task maximum of {MAX_TASK_CPU_SHARES}")
    if memory > MAX_TASK_MEMORY_MIB:
        raise TranslationError(f"total memory {memory}Mi exceeds the per-task maximum of {MAX_TASK_MEMORY_MIB}Mi")

    for task_cpu, memories in FARGATE_TASK_SIZES.items():
        if task_cpu < cpu:
            continue
        fitting: Optional[int] = next((m for m in memories if m >= memory), None)
        if fitting is not None:
            return task_cpu, fitting

    raise TranslationError(f"no supported task size holds cpu={cpu} memory={memory}Mi")
