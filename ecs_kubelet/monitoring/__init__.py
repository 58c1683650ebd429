"""Operational monitoring module for ecs-kubelet.

Provides an HTTP status server reporting the pods a provider tracks.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .server import MonitoringServer

logger = logging.getLogger(__name__)


def parse_bind(bind: str) -> tuple[str, int]:
    """Split "host:port" into its parts."""
    host, _, port = bind.rpartition(":")
    return host or "127.0.0.1", int(port)


def start_monitoring_server(provider, bind_address: str, port: int) -> Optional[MonitoringServer]:
    """Start monitoring HTTP server in background thread.

    Args:
        provider: FargateProvider to report on
        bind_address: IP address to bind to (e.g., "127.0.0.1")
        port: Port number to listen on

    Returns:
        MonitoringServer instance if started successfully, None otherwise
    """
    try:
        server = MonitoringServer(bind_address=bind_address, port=port, provider=provider)
    except OSError as exc:
        logger.error("Failed to start monitoring server: %s", exc, exc_info=True)
        return None

    server_thread = threading.Thread(
        target=server.serve_forever,
        name="monitoring-server",
        daemon=True,
    )
    server_thread.start()

    logger.info("Monitoring server started on %s:%d (node=%s)", bind_address, server.port, provider.node.name)
    return server


__all__ = ["MonitoringServer", "parse_bind", "start_monitoring_server"]
