"""Tests for the batch coordinator."""
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

import loadgen.batch
from loadgen.batch import run_batch
from loadgen.errors import ConfigError
from loadgen.models import RequestOutcome
from loadgen.policy import ConnectionPolicy


@pytest.mark.parametrize("concurrency", [1, 4, 16])
def test_returns_one_outcome_per_request(target, policy, concurrency):
    result = run_batch(1, target.url('/'), concurrency, policy)

    assert result.batch_number == 1
    assert len(result.outcomes) == concurrency
    assert [o.request_id for o in result.outcomes] == list(range(1, concurrency + 1))
    assert all(o.ok for o in result.outcomes)
    assert target.request_count == concurrency


def test_failures_do_not_cut_batch_short(target, closed_port_url, policy):
    result = run_batch(2, target.url('/error'), 5, policy)

    assert result.failed == 5
    assert {o.reason for o in result.outcomes} == {"HTTP 500"}

    result = run_batch(3, closed_port_url, 5, policy)

    assert len(result.outcomes) == 5
    assert result.succeeded == 0


def test_requests_run_concurrently(target, policy):
    # Each request takes ~50ms on the server; serial execution would take 500ms
    result = run_batch(1, target.url('/delay'), 10, policy)

    assert result.succeeded == 10
    assert result.total_duration_ms < 400


def test_batch_waits_for_slowest_request(target):
    policy = ConnectionPolicy(timeout_ms=300)

    result = run_batch(1, target.url('/hang'), 3, policy)

    assert result.reason_counts() == {"Timeout": 3}
    assert result.total_duration_ms >= max(o.duration_ms for o in result.outcomes)
    assert result.finished_at > result.started_at


def test_outcomes_ordered_by_id_not_completion(monkeypatch, policy):
    def fake_execute(request_id, url, policy, transport):
        # Later ids finish first
        time.sleep((5 - request_id) * 0.02)
        return RequestOutcome.success(request_id, 200, 1)

    monkeypatch.setattr(loadgen.batch, "execute", fake_execute)
    completed = []

    result = run_batch(1, "http://example.invalid/", 4, policy,
                       on_outcome=lambda o: completed.append(o.request_id))

    assert completed == [4, 3, 2, 1]
    assert [o.request_id for o in result.outcomes] == [1, 2, 3, 4]


def test_crashed_task_still_yields_outcome(monkeypatch, policy):
    def flaky_execute(request_id, url, policy, transport):
        if request_id == 2:
            raise RuntimeError("worker crashed")
        return RequestOutcome.success(request_id, 200, 1)

    monkeypatch.setattr(loadgen.batch, "execute", flaky_execute)

    result = run_batch(1, "http://example.invalid/", 3, policy)

    assert [o.request_id for o in result.outcomes] == [1, 2, 3]
    assert result.outcomes[1].reason == "worker crashed"
    assert result.succeeded == 2


def test_uses_supplied_pool(target, policy):
    with ThreadPoolExecutor(max_workers=4) as pool:
        first = run_batch(1, target.url('/'), 4, policy, pool=pool)
        second = run_batch(2, target.url('/'), 4, policy, pool=pool)

    assert first.succeeded == second.succeeded == 4


@pytest.mark.parametrize("batch_number, concurrency", [(1, 0), (0, 1)])
def test_rejects_invalid_arguments(policy, batch_number, concurrency):
    with pytest.raises(ConfigError):
        run_batch(batch_number, "http://127.0.0.1/", concurrency, policy)
