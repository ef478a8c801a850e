"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from src.services.metrics import NAMESPACE, MetricsClient


def _dim_map(datum: dict) -> dict[str, str]:
    return {d["Name"]: d["Value"] for d in datum["Dimensions"]}


class TestMetricsRecording:
    """Verify that record_success / record_failure buffer the right data."""

    def _make_client(self, *, enabled: bool = False) -> MetricsClient:
        with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}):
            return MetricsClient()

    def test_record_success_appends_count_and_latency(self):
        client = self._make_client()
        client.record_success("nexhealth", "GET /patients", latency_ms=123.4)
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"ExternalAPI/RequestCount", "ExternalAPI/Latency"}

    def test_record_failure_without_latency(self):
        client = self._make_client()
        client.record_failure("supabase", "load_business_config", error_type="TimeoutError")
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"ExternalAPI/RequestCount", "ExternalAPI/ErrorCount"}

    def test_record_failure_with_latency(self):
        client = self._make_client()
        client.record_failure("nexhealth", "POST /appointments", error_type="422", latency_ms=500.0)
        assert len(client._buffer) == 3

    def test_success_dimensions(self):
        client = self._make_client()
        client.record_success("nexhealth", "GET /providers", latency_ms=50.0)

        count, latency = client._buffer
        assert _dim_map(count) == {"Service": "nexhealth", "Status": "success"}
        assert _dim_map(latency) == {"Service": "nexhealth", "Operation": "GET /providers"}
        assert latency["Unit"] == "Milliseconds"

    def test_failure_dimensions_include_error_type(self):
        client = self._make_client()
        client.record_failure("nexhealth", "POST /authenticates", error_type="401")
        error_metric = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/ErrorCount")
        assert _dim_map(error_metric)["ErrorType"] == "401"


class TestMetricsFlush:
    """Verify flush behaviour with and without CloudWatch enabled."""

    def test_flush_when_disabled_sends_nothing_and_clears(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "false"}):
            client = MetricsClient()
        client.record_success("supabase", "load_business_config", latency_ms=100.0)

        assert client.flush() == 0
        assert client._buffer == []
        assert client._cw_client is None

    def test_flush_when_enabled_calls_put_metric_data(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "true"}):
            client = MetricsClient()
        mock_cw = MagicMock()
        client._cw_client = mock_cw

        client.record_success("nexhealth", "GET /patients", latency_ms=100.0)
        sent = client.flush()

        assert sent == 2
        call_kwargs = mock_cw.put_metric_data.call_args.kwargs
        assert call_kwargs["Namespace"] == NAMESPACE == "DentalVoiceAgent"
        assert len(call_kwargs["MetricData"]) == 2

    def test_flush_error_is_logged_not_raised(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "true"}):
            client = MetricsClient()
        client._cw_client = MagicMock()
        client._cw_client.put_metric_data.side_effect = RuntimeError("throttled")

        client.record_success("nexhealth", "GET /patients", latency_ms=1.0)
        assert client.flush() == 0

    def test_flush_empty_buffer_returns_zero(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "true"}):
            client = MetricsClient()
        assert client.flush() == 0

    def test_close_stops_thread_and_flushes(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "true"}):
            client = MetricsClient()
        client._cw_client = MagicMock()
        client.record_failure("supabase", "load_business_config", error_type="TimeoutError")

        client.close()

        assert client._stopped.is_set()
        client._cw_client.put_metric_data.assert_called_once()
