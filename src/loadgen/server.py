#!/usr/bin/env python3
"""
Instrumented Mock HTTP Server

A fast static responder to point the load generator at. Request counts and
latencies are exported in Prometheus format on /metrics.
"""
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
import json
import os
import signal
import sys
import threading
import time
from typing import Optional, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .metrics import observe_request


# Serialized once; every request gets the same bytes
MOCK_RESPONSE = json.dumps({
    "status": "ok",
    "message": "This is a fast mock response!",
}).encode()


class InstrumentedHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    start_time = time.time()

    def do_GET(self):
        """Handle GET requests with timing."""
        request_start = time.perf_counter()
        route = self.path.split('?', 1)[0]

        if route == '/metrics':
            self._send(200, generate_latest(), CONTENT_TYPE_LATEST)
        elif route == '/health':
            self._handle_health(request_start)
        else:
            self._handle_mock(request_start)

    def do_POST(self):
        """Any other method gets the mock response on every path."""
        request_start = time.perf_counter()
        self._discard_request_body()
        self._handle_mock(request_start)

    do_PUT = do_POST
    do_PATCH = do_POST
    do_DELETE = do_POST

    def do_HEAD(self):
        request_start = time.perf_counter()
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(MOCK_RESPONSE)))
        self.end_headers()
        self._record_metric("root", request_start, 200)

    def _handle_mock(self, request_start):
        status = self._send(200, MOCK_RESPONSE, 'application/json')
        self._record_metric("root", request_start, status)

    def _discard_request_body(self):
        length = int(self.headers.get('Content-Length') or 0)
        if length > 0:
            self.rfile.read(length)

    def _handle_health(self, request_start):
        health = {
            "status": "healthy",
            "uptime": time.time() - self.start_time,
            "pid": os.getpid()
        }
        status = self._send(200, json.dumps(health).encode(), 'application/json')
        self._record_metric("health", request_start, status)

    def _send(self, status: int, body: bytes, content_type: str) -> int:
        self.send_response(status)
        self.send_header('Content-Type', content_type)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)
        return status

    def _record_metric(self, handler: str, request_start: float, status: int):
        observe_request(handler, self.command, status, time.perf_counter() - request_start)

    def log_message(self, format, *args):
        """Only log errors."""
        if len(args) > 1 and not str(args[1]).startswith('2'):
            sys.stderr.write(f"{self.address_string()} - {format % args}\n")


class _Server(ThreadingHTTPServer):
    daemon_threads = True
    # A whole batch connects at once
    request_queue_size = 1024


class MockServer:
    def __init__(self, host='0.0.0.0', port=8080):
        self.host = host
        self.port = port
        self.server: Optional[_Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when started on port 0."""
        return self.server.server_address[:2]

    def _bind(self):
        self.server = _Server((self.host, self.port), InstrumentedHandler)

    def start(self):
        """Start the HTTP server and block until shut down."""
        self._bind()
        host, port = self.address
        print(f"Starting mock server on http://{host}:{port}")
        print(f"PID: {os.getpid()}")
        print("Endpoints:")
        print("  *   /*        - Mock JSON response")
        print("  GET /health   - Health check")
        print("  GET /metrics  - Prometheus metrics")
        print("\nPress Ctrl+C to stop")

        signal.signal(signal.SIGTERM, self._shutdown)

        try:
            self.server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            self.server.server_close()

    def start_background(self):
        """Start server in background thread."""
        self._bind()
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
        if self._thread:
            self._thread.join()
            self._thread = None

    def _shutdown(self, signum, frame):
        """Graceful shutdown."""
        print("\nShutting down server...")
        # shutdown() blocks until serve_forever returns, so it cannot run on its thread
        threading.Thread(target=self.server.shutdown, daemon=True).start()


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Instrumented mock HTTP server")
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to')
    parser.add_argument('--port', type=int, default=8080, help='Port to bind to')

    args = parser.parse_args(argv)

    server = MockServer(host=args.host, port=args.port)
    server.start()


if __name__ == '__main__':
    main()
