"""Shared fixtures: a scripted HTTP target running in a background thread."""
import socket
import threading
import time
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler

import pytest

from loadgen.policy import ConnectionPolicy


class ScriptedHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def setup(self):
        super().setup()
        self.server.count_connection()

    def do_GET(self):
        self.server.record_request(self.path, self.headers)
        route = self.path.split('?', 1)[0]

        if route == '/':
            self._reply(200, b"OK")
        elif route == '/error':
            self._reply(500, b"boom")
        elif route == '/not-found':
            self._reply(404, b"missing")
        elif route == '/hang':
            # Never answers while the client is still waiting
            self.server.release.wait(10)
            self.close_connection = True
        elif route == '/slow-body':
            self._headers(200, 10)
            self.wfile.write(b"01234")
            self.wfile.flush()
            time.sleep(0.2)
            self.wfile.write(b"56789")
        elif route == '/stall-body':
            self._headers(200, 10)
            self.wfile.write(b"01234")
            self.wfile.flush()
            self.server.release.wait(10)
            self.close_connection = True
        elif route == '/short-body':
            self._headers(200, 10)
            self.wfile.write(b"01234")
            self.wfile.flush()
            self.close_connection = True
        elif route == '/trickle-body':
            self._headers(200, 20)
            self._trickle(20, 0.15)
        elif route == '/late-stall-body':
            self._headers(200, 10)
            self.wfile.flush()
            self.server.release.wait(0.25)
            self._write(b"01234")
            self.server.release.wait(10)
            self.close_connection = True
        elif route == '/trickle-headers':
            self._write(b"HTTP/1.1 200 OK\r\n")
            for _ in range(40):
                if self.server.release.wait(0.1) or not self._write(b"X"):
                    break
            self.close_connection = True
        elif route == '/delay':
            time.sleep(0.05)
            self._reply(200, b"OK")
        else:
            self._reply(404, b"")

    def _write(self, data):
        try:
            self.wfile.write(data)
            self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            self.close_connection = True
            return False
        return True

    def _trickle(self, count, interval):
        """Send count bytes one at a time."""
        for _ in range(count):
            if not self._write(b"x") or self.server.release.wait(interval):
                break
        self.close_connection = True

    def _headers(self, status, length):
        self.send_response(status)
        self.send_header('Content-Type', 'text/plain')
        self.send_header('Content-Length', str(length))
        self.end_headers()

    def _reply(self, status, body):
        self._headers(status, len(body))
        self.wfile.write(body)

    def log_message(self, *args):
        pass


class TestHTTPServer(ThreadingHTTPServer):
    """Minimal HTTP server for testing, bound to a free local port."""

    daemon_threads = True
    request_queue_size = 128

    def __init__(self, host='127.0.0.1'):
        super().__init__((host, 0), ScriptedHandler)
        self.release = threading.Event()
        self._lock = threading.Lock()
        self.connections = 0
        self.requests = []
        self._thread = None

    def count_connection(self):
        with self._lock:
            self.connections += 1

    def record_request(self, path, headers):
        with self._lock:
            self.requests.append((path, dict(headers)))

    @property
    def request_count(self):
        with self._lock:
            return len(self.requests)

    def url(self, path='/'):
        host, port = self.server_address[:2]
        return f"http://{host}:{port}{path}"

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the server."""
        self.release.set()
        self.shutdown()
        self.server_close()
        self._thread.join()


@pytest.fixture
def target():
    server = TestHTTPServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def closed_port_url():
    """URL of a local port nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}/"


@pytest.fixture
def policy():
    return ConnectionPolicy(timeout_ms=2000, keep_alive=False)


@pytest.fixture
def keepalive_policy():
    return ConnectionPolicy(timeout_ms=2000, keep_alive=True)
