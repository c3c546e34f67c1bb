# tests/test_metrics.py
import json

from docchat.models import TokenUsage
from docchat.observability.metrics import MetricsTracker


def test_request_counters():
    tracker = MetricsTracker()

    tracker.record_success(0.2)
    tracker.record_success(0.4)
    tracker.record_failure()

    metrics = tracker.get_metrics()

    assert metrics["total_requests"] == 3
    assert metrics["successful_requests"] == 2
    assert metrics["failed_requests"] == 1
    assert abs(metrics["avg_latency"] - 0.3) < 1e-9
    assert metrics["p95_latency"] == 0.4
    assert "latencies" not in metrics


def test_token_counters():
    tracker = MetricsTracker()

    tracker.record_tokens(TokenUsage(prompt=10, completion=5, total=15))
    tracker.record_tokens(TokenUsage(prompt=1, completion=1, total=2))

    metrics = tracker.get_metrics()

    assert metrics["queries"] == 2
    assert metrics["prompt_tokens"] == 11
    assert metrics["total_tokens"] == 17


def test_empty_percentile():
    assert MetricsTracker().get_latency_percentile(95) == 0.0


def test_persists_to_file(tmp_path):
    path = tmp_path / "storage" / "metrics.json"

    MetricsTracker(str(path)).record_success(1.5)

    assert json.loads(path.read_text())["successful_requests"] == 1
    assert MetricsTracker(str(path)).get_metrics()["total_latency"] == 1.5
