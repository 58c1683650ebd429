from __future__ import annotations

import time
from typing import Callable, Iterable, Optional, Protocol, Union

from ..pods.interface import PodPhase, PodStatus, PollTimeout


class StatusSource(Protocol):
    def get_pod_status(self, namespace: str, name: str) -> Optional[PodStatus]:  # pragma: no cover - protocol
        ...


def wait_for_phase(
    provider: StatusSource,
    namespace: str,
    name: str,
    phases: Union[PodPhase, Iterable[PodPhase]],
    timeout: float,
    interval: float = 3.0,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[PodStatus]:
    """Poll a pod until it reaches one of the phases or becomes absent.

    Returns the matching status, or None if the pod is absent.

    Raises:
        PollTimeout: when the deadline passes; nothing is changed
    """
    wanted = {phases} if isinstance(phases, PodPhase) else set(phases)
    deadline = clock() + timeout
    while True:
        status = provider.get_pod_status(namespace, name)
        if status is None or status.phase in wanted:
            return status
        remaining = deadline - clock()
        if remaining <= 0:
            raise PollTimeout(
                f"pod {namespace}/{name} still {status.phase.value} after {timeout}s, "
                f"waiting for {', '.join(sorted(p.value for p in wanted))}"
            )
        sleep(min(interval, remaining))
