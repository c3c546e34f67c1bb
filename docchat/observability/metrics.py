import json
import logging
import os
import threading
from typing import Dict, List, Optional

from docchat.models import TokenUsage

logger = logging.getLogger(__name__)

# Latency samples kept for percentile calculation
_MAX_LATENCIES = 1000


class MetricsTracker:
    """
    Request and token counters.

    With a `path`, counters are written to JSON after every update and
    restored on construction.
    """

    def __init__(self, path: Optional[str] = None):

        self._path = path
        self._lock = threading.Lock()
        self._metrics = self._empty()

        self._load()

    @staticmethod
    def _empty() -> Dict:

        return {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,

            "total_latency": 0.0,
            "avg_latency": 0.0,

            "queries": 0,
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,

            "latencies": [],
        }

    def _load(self):

        if not self._path or not os.path.exists(self._path):
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

        except (OSError, ValueError) as e:

            logger.warning(
                "Metrics file unreadable, starting from zero",
                extra={"path": self._path, "error": str(e)},
            )

            return

        self._metrics.update(data)

    def _save(self):

        if not self._path:
            return

        directory = os.path.dirname(self._path)

        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(self._path, "w") as f:
            json.dump(self._metrics, f, indent=2)

    def record_success(self, latency: float):

        with self._lock:

            self._metrics["total_requests"] += 1
            self._metrics["successful_requests"] += 1
            self._metrics["total_latency"] += latency

            self._metrics["avg_latency"] = (
                self._metrics["total_latency"]
                / self._metrics["successful_requests"]
            )

            latencies = self._metrics["latencies"]
            latencies.append(latency)
            del latencies[:-_MAX_LATENCIES]

            self._save()

    def record_failure(self):

        with self._lock:

            self._metrics["total_requests"] += 1
            self._metrics["failed_requests"] += 1

            self._save()

    def record_tokens(self, usage: TokenUsage):

        with self._lock:

            self._metrics["queries"] += 1
            self._metrics["prompt_tokens"] += usage.prompt
            self._metrics["completion_tokens"] += usage.completion
            self._metrics["total_tokens"] += usage.total

            self._save()

    def get_metrics(self) -> Dict:

        with self._lock:
            metrics = {k: v for k, v in self._metrics.items() if k != "latencies"}

        metrics["p95_latency"] = self.get_latency_percentile(95)

        return metrics

    def get_latency_percentile(self, percentile: float) -> float:

        latencies: List[float] = self._metrics.get("latencies", [])

        if not latencies:
            return 0.0

        sorted_latencies = sorted(latencies)

        index = int(len(sorted_latencies) * percentile / 100)

        index = min(index, len(sorted_latencies) - 1)

        return sorted_latencies[index]
