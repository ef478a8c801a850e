"""CloudWatch custom metrics for the external services the worker calls.

Every NexHealth request and every Supabase config lookup records a data
point (count, latency, errors).  Data points are buffered in memory and
pushed by a daemon thread every ``FLUSH_INTERVAL_SECONDS``.  Unless
``METRICS_ENABLED=true`` the buffer is only logged at DEBUG level and
dropped on flush, which is what local development and the test suite get.

>>> from src.services.metrics import metrics
>>> metrics.record_success("nexhealth", "GET /patients", latency_ms=84.2)
>>> metrics.record_failure("supabase", "load_business_config", error_type="TimeoutError")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "DentalVoiceAgent"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # PutMetricData limit

REQUEST_COUNT = "ExternalAPI/RequestCount"
LATENCY = "ExternalAPI/Latency"
ERROR_COUNT = "ExternalAPI/ErrorCount"


def _datum(name: str, value: float, unit: str, when: datetime, **dimensions: str) -> dict[str, Any]:
    """One ``MetricData`` entry in the shape boto3 expects."""
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Timestamp": when,
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        now = datetime.now(UTC)
        self._extend(
            _datum(REQUEST_COUNT, 1, "Count", now, Service=service, Status="success"),
            _datum(LATENCY, latency_ms, "Milliseconds", now, Service=service, Operation=operation),
        )
        logger.debug("Metric: %s %s ok in %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed call; latency is only published when measured.

        Transport errors that never produced a response pass no latency.
        """
        now = datetime.now(UTC)
        data = [
            _datum(REQUEST_COUNT, 1, "Count", now, Service=service, Status="failure"),
            _datum(ERROR_COUNT, 1, "Count", now, Service=service, ErrorType=error_type),
        ]
        if latency_ms > 0:
            data.append(
                _datum(LATENCY, latency_ms, "Milliseconds", now, Service=service, Operation=operation)
            )
        self._extend(*data)
        logger.debug("Metric: %s %s failed (%s)", service, operation, error_type)

    def flush(self) -> int:
        """Publish whatever is buffered.  Returns the number of data points sent."""
        batch = self._drain()
        if not batch:
            return 0
        if not self._enabled:
            logger.debug("Dropping %d metrics (METRICS_ENABLED is off)", len(batch))
            return 0
        return self._publish(batch)

    def close(self) -> None:
        """Stop the flush thread and push the remaining buffer."""
        self._stopped.set()
        self.flush()

    # ── Internal ──────────────────────────────────────────────────────

    def _extend(self, *data: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.extend(data)

    def _drain(self) -> list[dict[str, Any]]:
        with self._lock:
            batch, self._buffer = self._buffer, []
        return batch

    def _publish(self, batch: list[dict[str, Any]]) -> int:
        sent = 0
        try:
            cw = self._get_cw_client()
            for start in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[start : start + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def _start_flush_thread(self) -> None:
        def _loop():
            while not self._stopped.wait(FLUSH_INTERVAL_SECONDS):
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        threading.Thread(target=_loop, daemon=True, name="metrics-flush").start()
        atexit.register(self.close)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
