#!/usr/bin/env python3
"""
HTTP Transport

Owns the requests sessions used to talk to the target, according to a
ConnectionPolicy, and the watchdog that enforces each request's deadline.
"""
import socket
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from .policy import ConnectionPolicy, validate_concurrency


# Watchdog of the request running on the current thread, if any
_current = threading.local()


class RequestWatchdog:
    """
    Aborts a request that outlives its deadline.

    Socket timeouts only bound a single blocking read, so a peer that keeps
    sending a byte at a time could hold a request open indefinitely. The
    watchdog tracks the connection the current thread checked out of its pool
    and shuts its socket down when the deadline passes, which fails whatever
    read or write is blocked on it.
    """

    def __init__(self, deadline: float):
        self.deadline = deadline
        self.expired = False
        self._lock = threading.Lock()
        self._conn = None
        self._done = False
        self._timer: Optional[threading.Timer] = None

    def attach(self, conn):
        with self._lock:
            self._conn = conn

    def release(self, conn):
        """Forget a connection going back to the pool."""
        with self._lock:
            if self._conn is conn:
                self._conn = None

    def expire(self):
        with self._lock:
            if self._done:
                return
            self.expired = True
            sock = getattr(self._conn, "sock", None)
            if sock is not None:
                try:
                    sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass

    def __enter__(self):
        _current.watchdog = self
        self._timer = threading.Timer(max(0.0, self.deadline - time.perf_counter()), self.expire)
        self._timer.daemon = True
        self._timer.start()
        return self

    def __exit__(self, *exc_info):
        self._timer.cancel()
        with self._lock:
            self._done = True
            self._conn = None
        _current.watchdog = None


class _WatchedPoolMixin:
    """Reports checked-out connections to the thread's watchdog."""

    def _get_conn(self, timeout=None):
        conn = super()._get_conn(timeout)
        watchdog = getattr(_current, "watchdog", None)
        if watchdog is not None:
            watchdog.attach(conn)
        return conn

    def _put_conn(self, conn):
        watchdog = getattr(_current, "watchdog", None)
        if watchdog is not None:
            watchdog.release(conn)
        super()._put_conn(conn)


class WatchedHTTPConnectionPool(_WatchedPoolMixin, HTTPConnectionPool):
    pass


class WatchedHTTPSConnectionPool(_WatchedPoolMixin, HTTPSConnectionPool):
    pass


WATCHED_POOL_CLASSES = {
    "http": WatchedHTTPConnectionPool,
    "https": WatchedHTTPSConnectionPool,
}


class WatchedAdapter(HTTPAdapter):
    """HTTPAdapter whose pools cooperate with RequestWatchdog."""

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = WATCHED_POOL_CLASSES

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        manager = super().proxy_manager_for(proxy, **proxy_kwargs)
        manager.pool_classes_by_scheme = WATCHED_POOL_CLASSES
        return manager


class Transport:
    """
    Session provider for one run.

    With keep-alive enabled a single session is shared by all requests and
    its connection pool holds at least ``pool_size`` connections, so
    concurrent requests never queue for a pooled connection. Without
    keep-alive each request gets its own session that asks the server to
    close the connection and is closed after use.
    """

    def __init__(self, policy: ConnectionPolicy, pool_size: int = 1):
        self.policy = policy
        self.pool_size = validate_concurrency(pool_size)
        self._shared: Optional[requests.Session] = None
        if policy.keep_alive:
            self._shared = self._new_session()

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        adapter = WatchedAdapter(
            pool_connections=1,
            pool_maxsize=self.pool_size,
            max_retries=0,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        if not self.policy.keep_alive:
            session.headers["Connection"] = "close"
        return session

    @contextmanager
    def session(self) -> Iterator[requests.Session]:
        """Yield the session to use for a single request."""
        if self._shared is not None:
            yield self._shared
            return
        session = self._new_session()
        try:
            yield session
        finally:
            session.close()

    def watch(self, deadline: float) -> RequestWatchdog:
        """Watchdog for one request; use as a context manager around it."""
        return RequestWatchdog(deadline)

    def close(self):
        """Release pooled connections."""
        if self._shared is not None:
            self._shared.close()
            self._shared = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
