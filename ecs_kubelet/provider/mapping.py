"""Thread-safe table linking pod identities to back-end task handles."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from ..pods.interface import AlreadyExists, PodIdentity, PodPhase, TaskHandle

logger = logging.getLogger(__name__)

# Phases only move forward in this order; terminal phases share the top rank.
_PHASE_RANK = {
    PodPhase.UNKNOWN: 0,
    PodPhase.PENDING: 1,
    PodPhase.RUNNING: 2,
    PodPhase.SUCCEEDED: 3,
    PodPhase.FAILED: 3,
}


@dataclass(frozen=True)
class MappingEntry:
    """Mapping information for one tracked pod."""

    identity: PodIdentity
    handle: TaskHandle
    family: str
    task_definition_arn: str
    container_names: Tuple[str, ...]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    delete_requested: bool = False
    last_phase: PodPhase = PodPhase.PENDING


def monotonic_phase(previous: PodPhase, observed: PodPhase) -> PodPhase:
    """Return the phase to report given the last reported and newly derived one."""
    if previous.is_terminal:
        return previous
    if observed is PodPhase.UNKNOWN:
        return observed
    if _PHASE_RANK[observed] < _PHASE_RANK[previous]:
        return previous
    return observed


class IdentityMapping:
    """Thread-safe identity mapping.

    Uses an RLock for every read and write. Creates reserve the identity
    first so two concurrent creates of the same pod cannot both launch.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], MappingEntry] = {}
        self._reserved: Set[Tuple[str, str]] = set()
        self._lock = threading.RLock()

    def reserve(self, identity: PodIdentity) -> None:
        """Claim an identity for an in-flight create.

        Raises:
            AlreadyExists: if the identity is mapped or already reserved
        """
        with self._lock:
            if identity.key in self._entries:
                raise AlreadyExists(f"pod {identity} already has task {self._entries[identity.key].handle.task_arn}")
            if identity.key in self._reserved:
                raise AlreadyExists(f"pod {identity} is already being created")
            self._reserved.add(identity.key)

    def release(self, identity: PodIdentity) -> None:
        """Drop a reservation without recording a mapping."""
        with self._lock:
            self._reserved.discard(identity.key)

    def record(self, entry: MappingEntry) -> None:
        """Record a launched task, consuming the identity's reservation."""
        with self._lock:
            self._reserved.discard(entry.identity.key)
            self._entries[entry.identity.key] = entry
            logger.debug("Recorded mapping %s -> %s", entry.identity, entry.handle.task_arn)

    def get(self, namespace: str, name: str) -> Optional[MappingEntry]:
        with self._lock:
            return self._entries.get((namespace, name))

    def remove(self, namespace: str, name: str, handle: Optional[TaskHandle] = None) -> Optional[MappingEntry]:
        """Remove an entry; when handle is given, only if it still maps to that handle."""
        with self._lock:
            entry = self._entries.get((namespace, name))
            if entry is None:
                return None
            if handle is not None and entry.handle != handle:
                return None
            del self._entries[(namespace, name)]
            logger.debug("Removed mapping %s -> %s", entry.identity, entry.handle.task_arn)
            return entry

    def mark_delete_requested(self, namespace: str, name: str) -> Optional[MappingEntry]:
        with self._lock:
            entry = self._entries.get((namespace, name))
            if entry is None:
                return None
            entry = replace(entry, delete_requested=True)
            self._entries[(namespace, name)] = entry
            return entry

    def observe_phase(self, namespace: str, name: str, handle: TaskHandle, phase: PodPhase) -> PodPhase:
        """Store a newly derived phase and return the phase to report.

        Reported phases never regress; terminal phases are sticky.
        """
        with self._lock:
            entry = self._entries.get((namespace, name))
            if entry is None or entry.handle != handle:
                return phase
            reported = monotonic_phase(entry.last_phase, phase)
            if reported is not PodPhase.UNKNOWN and reported != entry.last_phase:
                self._entries[(namespace, name)] = replace(entry, last_phase=reported)
                logger.info("Pod %s phase %s -> %s", entry.identity, entry.last_phase.value, reported.value)
            return reported

    def drop_if_finished(self, namespace: str, name: str, handle: TaskHandle) -> bool:
        """Remove the entry if delete was requested and its task reached a terminal phase."""
        with self._lock:
            entry = self._entries.get((namespace, name))
            if entry is None or entry.handle != handle:
                return False
            if not (entry.delete_requested and entry.last_phase.is_terminal):
                return False
            del self._entries[(namespace, name)]
            logger.info("Pod %s finished after delete, dropping task %s", entry.identity, handle.task_arn)
            return True

    def list_entries(self, live_only: bool = False) -> List[MappingEntry]:
        """List entries.

        Args:
            live_only: If True, skip entries already in a terminal phase
        """
        with self._lock:
            entries = list(self._entries.values())
            if live_only:
                entries = [e for e in entries if not e.last_phase.is_terminal]
            return entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
