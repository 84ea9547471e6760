#!/usr/bin/env python3
"""
Single-Request Executor

Performs one GET against the target within a bounded lifetime and turns
whatever happens into a RequestOutcome.
"""
import time
import uuid
from typing import Optional

import requests
from urllib3.exceptions import ReadTimeoutError
from urllib3.util import Timeout

from .models import TIMEOUT_REASON, RequestOutcome
from .policy import ConnectionPolicy
from .transport import Transport


TEST_ID_HEADER = "X-Mgc-Test-Id"
CHUNK_SIZE = 16 * 1024

# Lower bound for the socket timeout handed to urllib3
MIN_SOCKET_TIMEOUT_S = 0.001


class DeadlineExceeded(Exception):
    """The request outlived its policy timeout."""


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.perf_counter() - start) * 1000))


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (requests.exceptions.Timeout, DeadlineExceeded)):
        return True
    # iter_content wraps body read timeouts in a ConnectionError
    return any(isinstance(arg, ReadTimeoutError) for arg in getattr(exc, "args", ()))


def _root_cause(exc: BaseException) -> BaseException:
    """Follow wrapped exceptions down to the one that started it."""
    seen = set()
    while id(exc) not in seen:
        seen.add(id(exc))
        inner = getattr(exc, "reason", None)
        if not isinstance(inner, BaseException):
            inner = exc.args[0] if exc.args and isinstance(exc.args[0], BaseException) else None
        if inner is None:
            inner = exc.__cause__
        if inner is None:
            break
        exc = inner
    return exc


def describe_error(exc: BaseException) -> str:
    """Human readable description of a transport failure."""
    root = _root_cause(exc)
    detail = str(root) or root.__class__.__name__
    if isinstance(exc, requests.exceptions.ChunkedEncodingError):
        return f"Body read failed: {detail}"
    if root is exc and not str(exc):
        return detail
    return f"{exc.__class__.__name__}: {detail}"


def _fetch(session: requests.Session, url: str, deadline: float, test_id: str) -> int:
    """
    Issue the GET and drain the body before the deadline.

    Returns:
        The HTTP status code of the response
    """
    remaining = max(deadline - time.perf_counter(), MIN_SOCKET_TIMEOUT_S)
    response = session.get(
        url,
        headers={TEST_ID_HEADER: test_id},
        timeout=Timeout(total=remaining),
        stream=True,
    )
    # Closing an unread response discards its connection instead of pooling it
    with response:
        for _ in response.iter_content(chunk_size=CHUNK_SIZE):
            if time.perf_counter() >= deadline:
                raise DeadlineExceeded()
        if time.perf_counter() >= deadline:
            raise DeadlineExceeded()
        return response.status_code


def execute(request_id: int, url: str, policy: ConnectionPolicy,
            transport: Optional[Transport] = None) -> RequestOutcome:
    """
    Make a single HTTP request and classify the result.

    Never raises: timeouts, transport errors and non-2xx responses are all
    returned as failed outcomes.

    Args:
        request_id: Sequence number of the request within its batch
        url: Absolute target URL
        policy: Timeout and keep-alive settings
        transport: Session provider shared across the run; a private one is
            created and closed when omitted

    Returns:
        RequestOutcome for this request
    """
    owned = transport is None
    watchdog = None
    test_id = str(uuid.uuid4())
    start = time.perf_counter()
    deadline = start + policy.timeout_s

    try:
        if owned:
            transport = Transport(policy)
        watchdog = transport.watch(deadline)
        with transport.session() as session, watchdog:
            status_code = _fetch(session, url, deadline, test_id)
    except Exception as e:
        if _is_timeout(e) or (watchdog is not None and watchdog.expired) \
                or time.perf_counter() >= deadline:
            reason = TIMEOUT_REASON
        else:
            reason = describe_error(e)
        return RequestOutcome.failed(request_id, reason, _elapsed_ms(start), test_id=test_id)
    finally:
        if owned and transport is not None:
            transport.close()

    if not 200 <= status_code < 300:
        return RequestOutcome.failed(request_id, f"HTTP {status_code}", _elapsed_ms(start),
                                     test_id=test_id)
    return RequestOutcome.success(request_id, status_code, _elapsed_ms(start), test_id=test_id)
