"""HTTP status server for operational monitoring."""

from __future__ import annotations

import json
import logging
import socket
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict
from urllib.parse import parse_qs, unquote, urlparse

from ..pods.interface import NotFound, Pod, ProviderError, TransientError

logger = logging.getLogger(__name__)


def _pod_to_dict(pod: Pod) -> Dict[str, Any]:
    status = pod.status
    data: Dict[str, Any] = {
        "namespace": pod.namespace,
        "name": pod.name,
        "uid": pod.identity.uid,
        "phase": status.phase.value if status else None,
    }
    if status is not None:
        data.update(
            {
                "reason": status.reason,
                "message": status.message,
                "pod_ip": status.pod_ip,
                "started_at": status.started_at.isoformat() if status.started_at else None,
                "containers": [
                    {
                        "name": cs.name,
                        "image": cs.image,
                        "state": cs.state,
                        "exit_code": cs.exit_code,
                        "reason": cs.reason,
                    }
                    for cs in status.container_statuses
                ],
            }
        )
    return data


class MonitoringRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for monitoring endpoints."""

    def __init__(self, request, client_address, server, provider, started_at: float):
        """Initialize request handler.

        Args:
            request: Socket request
            client_address: Client address
            server: HTTP server instance
            provider: FargateProvider whose pods are reported
            started_at: Server start time (epoch seconds)
        """
        self.provider = provider
        self.server_start_time = started_at
        super().__init__(request, client_address, server)

    def log_message(self, format, *args):
        """Override to use our logger."""
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        """Handle GET requests."""
        try:
            parsed_path = urlparse(self.path)
            parts = [unquote(p) for p in parsed_path.path.strip("/").split("/") if p]

            if parts == ["api", "v1", "status"]:
                self._handle_status()
            elif parts == ["api", "v1", "pods"]:
                self._handle_list_pods()
            elif len(parts) == 5 and parts[:3] == ["api", "v1", "pods"]:
                self._handle_pod_details(parts[3], parts[4])
            elif len(parts) == 7 and parts[:3] == ["api", "v1", "pods"] and parts[5] == "logs":
                self._handle_pod_logs(parts[3], parts[4], parts[6], parsed_path.query)
            else:
                self._send_error(404, "Not Found", "Unknown endpoint")

        except NotFound as exc:
            self._send_error(404, "Not Found", str(exc))
        except TransientError as exc:
            self._send_error(503, "Service Unavailable", str(exc))
        except (ProviderError, ValueError) as exc:
            logger.error("Error handling request: %s", exc, exc_info=True)
            self._send_error(500, "Internal Server Error", str(exc))

    def _handle_status(self):
        """Handle GET /api/v1/status."""
        status_data = {
            "node": self.provider.node.name,
            "cluster": self.provider.config.cluster,
            "region": self.provider.config.region,
            "uptime_seconds": int(time.time() - self.server_start_time),
            "status": "healthy",
            "pods_tracked": len(self.provider.mapping),
            "pods_live": len(self.provider.list_live_pods()),
            "capacity": self.provider.capacity(),
        }
        self._send_json(200, status_data)

    def _handle_list_pods(self):
        """Handle GET /api/v1/pods."""
        pods = [_pod_to_dict(pod) for pod in self.provider.get_pods()]
        self._send_json(200, {"pods": pods, "total": len(pods)})

    def _handle_pod_details(self, namespace: str, name: str):
        """Handle GET /api/v1/pods/<namespace>/<name>."""
        pod = self.provider.get_pod(namespace, name)
        if pod is None:
            self._send_error(404, "Not Found", f"Pod not found: {namespace}/{name}")
            return
        self._send_json(200, _pod_to_dict(pod))

    def _handle_pod_logs(self, namespace: str, name: str, container: str, query_string: str):
        """Handle GET /api/v1/pods/<namespace>/<name>/logs/<container>."""
        params = parse_qs(query_string)
        tail_lines = int(params.get("tail", ["100"])[0])

        log_content = self.provider.get_container_logs(namespace, name, container, tail_lines).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(log_content)))
        self.end_headers()
        self.wfile.write(log_content)

    def _send_json(self, status_code: int, data: dict):
        """Send JSON response."""
        json_data = json.dumps(data, indent=2).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(json_data)))
        self.end_headers()
        self.wfile.write(json_data)

    def _send_error(self, status_code: int, error: str, message: str):
        """Send error JSON response."""
        error_data = {"error": error, "error_code": error.upper().replace(" ", "_"), "message": message}
        self._send_json(status_code, error_data)


class MonitoringServer(ThreadingHTTPServer):
    """HTTP server for monitoring endpoints."""

    def __init__(self, bind_address: str, port: int, provider):
        """Initialize monitoring server.

        Args:
            bind_address: IP address to bind to
            port: Port number (0 for random port)
            provider: FargateProvider to report on
        """
        self.bind_address = bind_address
        self.port = port
        self.provider = provider
        started_at = time.time()

        def handler_factory(request, client_address, server):
            return MonitoringRequestHandler(request, client_address, server, provider=provider, started_at=started_at)

        super().__init__((bind_address, port), handler_factory)

        # Set socket options for reuse
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # If port was 0, get the actual assigned port
        if port == 0:
            self.port = self.server_address[1]

    def serve_forever(self, poll_interval: float = 0.5):
        """Start serving requests."""
        logger.info("Monitoring server listening on %s:%d", self.bind_address, self.port)
        try:
            super().serve_forever(poll_interval=poll_interval)
        finally:
            logger.info("Monitoring server stopped")
