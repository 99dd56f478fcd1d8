"""
Semantic test: run summaries are exported as Pushgateway gauges.

Invariant:
Without PROMETHEUS_PUSHGATEWAY_URL nothing is pushed; with it, the run
summary gauges are pushed under the configured grouping key.
"""

from __future__ import annotations

from lop_twap.core.domain.types import ExecutionSummary
from lop_twap.runtime import prometheus_metrics
from lop_twap.runtime.prometheus_metrics import PrometheusMetricsClient

SUMMARY = ExecutionSummary(total_slices=4, succeeded=2, failed=1, cancelled=1, pending=0, executed_amount=500)


def test_disabled_without_gateway(monkeypatch) -> None:
    pushed = []
    monkeypatch.setattr(prometheus_metrics, "push_to_gateway", lambda **kwargs: pushed.append(kwargs))

    client = PrometheusMetricsClient(environ={})
    client.set_run_summary(SUMMARY, labels={"maker": "0xabc"})
    client.push_all()

    assert not client.is_enabled()
    assert pushed == []


def test_summary_gauges_pushed(monkeypatch) -> None:
    pushed = []
    monkeypatch.setattr(prometheus_metrics, "push_to_gateway", lambda **kwargs: pushed.append(kwargs))
    client = PrometheusMetricsClient(
        environ={
            "PROMETHEUS_PUSHGATEWAY_URL": "http://pushgateway:9091",
            "PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON": '{"run": "r-1", "ignored": 3}',
        }
    )

    client.set_run_summary(SUMMARY, labels={"maker": "0xabc"})
    client.push_all()

    registry = client.registry
    assert registry.get_sample_value("twap_slices_succeeded", {"maker": "0xabc"}) == 2
    assert registry.get_sample_value("twap_slices_failed", {"maker": "0xabc"}) == 1
    assert registry.get_sample_value("twap_slices_cancelled", {"maker": "0xabc"}) == 1
    assert registry.get_sample_value("twap_executed_amount", {"maker": "0xabc"}) == 500
    assert pushed == [
        {
            "gateway": "http://pushgateway:9091",
            "job": "lop_twap",
            "registry": registry,
            "grouping_key": {"run": "r-1"},
        }
    ]


def test_invalid_grouping_key_ignored() -> None:
    client = PrometheusMetricsClient(
        environ={"PROMETHEUS_PUSHGATEWAY_URL": "http://x", "PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON": "{nope"}
    )

    assert client.grouping_key == {}
