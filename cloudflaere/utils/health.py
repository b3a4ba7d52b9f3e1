"""
Health check module for Cloudflaere.

This module provides health check endpoints for monitoring the application.
"""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Thread
from typing import Optional


class HealthCheckHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for health check endpoints.
    """

    def __init__(self, *args, **kwargs):
        self.logger = logging.getLogger("cloudflaere.health")
        super().__init__(*args, **kwargs)

    def do_GET(self):
        """
        Handle GET requests.
        """
        if self.path == "/health":
            self._handle_health_check()
        elif self.path == "/metrics":
            self._handle_metrics()
        else:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b"Not Found")

    def _handle_health_check(self):
        """
        Handle health check requests.
        """
        status = self.server.status
        healthy = status.is_healthy()

        response = {
            "status": "healthy" if healthy else "unhealthy",
            "cycles": status.cycles,
            "failed_cycles": status.failed_cycles,
            "last_success": status.last_success,
            "last_error": status.last_error,
        }

        self.send_response(200 if healthy else 503)
        self.send_header("Content-type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(response).encode())

    def _handle_metrics(self):
        """
        Handle metrics requests.
        """
        status = self.server.status
        totals = status.totals

        self.send_response(200)
        self.send_header("Content-type", "text/plain")
        self.end_headers()

        metrics = [
            "# HELP cloudflaere_up Whether the Cloudflaere service is up",
            "# TYPE cloudflaere_up gauge",
            "cloudflaere_up 1",
            "# HELP cloudflaere_cycles_total Reconciliation cycles run",
            "# TYPE cloudflaere_cycles_total counter",
            f"cloudflaere_cycles_total {status.cycles}",
            "# HELP cloudflaere_cycles_failed_total Reconciliation cycles abandoned",
            "# TYPE cloudflaere_cycles_failed_total counter",
            f"cloudflaere_cycles_failed_total {status.failed_cycles}",
            "# HELP cloudflaere_records_total Record decisions by outcome",
            "# TYPE cloudflaere_records_total counter",
        ]
        for outcome in (
            "creates",
            "updates",
            "deletes",
            "noops",
            "skipped",
            "conflicts",
            "failures",
        ):
            metrics.append(
                f'cloudflaere_records_total{{outcome="{outcome}"}} {getattr(totals, outcome)}'
            )

        self.wfile.write(("\n".join(metrics) + "\n").encode())

    def log_message(self, format, *args):
        """
        Override log_message to use the application logger.
        """
        self.logger.debug(format % args)


class HealthCheckServer:
    """
    HTTP server for health check endpoints.
    """

    def __init__(self, status, host: str = "0.0.0.0", port: int = 8080):
        """
        Initialize a HealthCheckServer.

        Args:
            status: CycleStatus of the controller
            host: Host to bind to
            port: Port to bind to, 0 for any free port
        """
        self.status = status
        self.host = host
        self.port = port
        self.server: Optional[ThreadingHTTPServer] = None
        self.thread: Optional[Thread] = None
        self.logger = logging.getLogger("cloudflaere.health")

    def start(self):
        """
        Start the health check server.
        """
        self.server = ThreadingHTTPServer((self.host, self.port), HealthCheckHandler)
        self.server.status = self.status
        self.port = self.server.server_address[1]
        self.thread = Thread(target=self.server.serve_forever)
        self.thread.daemon = True
        self.thread.start()
        self.logger.info(f"Health check: {self.host}:{self.port}/health")

    def stop(self):
        """
        Stop the health check server.
        """
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.logger.info("Health check server stopped")
