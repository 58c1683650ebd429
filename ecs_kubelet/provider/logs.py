"""Container log retrieval from the back-end log store."""

from __future__ import annotations

import logging

from ..pods.interface import LogBackend, NotFound
from ..translate.task_definition import log_stream_name
from .mapping import IdentityMapping
from .throttle import TokenBucket

logger = logging.getLogger(__name__)


class LogRetriever:
    """Fetches tailed container output; nothing is cached."""

    def __init__(
        self,
        backend: LogBackend,
        mapping: IdentityMapping,
        log_group: str,
        throttle: TokenBucket,
    ) -> None:
        self._backend = backend
        self._mapping = mapping
        self._log_group = log_group
        self._throttle = throttle

    def get_logs(self, namespace: str, name: str, container: str, tail_lines: int) -> str:
        """Return up to tail_lines most recent lines, newline-terminated.

        A stream that does not exist yet yields an empty string.

        Raises:
            NotFound: if the pod is not tracked or has no such container
        """
        entry = self._mapping.get(namespace, name)
        if entry is None:
            raise NotFound(f"pod {namespace}/{name} is not tracked")
        if container not in entry.container_names:
            raise NotFound(f"pod {namespace}/{name} has no container {container!r}")

        stream = log_stream_name(entry.family, container, entry.handle.task_id)
        self._throttle.acquire()
        messages = self._backend.tail_events(self._log_group, stream, tail_lines if tail_lines > 0 else None)
        if messages is None:
            return ""
        if tail_lines > 0:
            messages = messages[-tail_lines:]
        logger.debug("Fetched %d log line(s) from %s", len(messages), stream)
        return "".join(m if m.endswith("\n") else m + "\n" for m in messages)
