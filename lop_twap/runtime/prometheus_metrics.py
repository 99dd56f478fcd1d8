from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Mapping

from prometheus_client import CollectorRegistry, Gauge, push_to_gateway

if TYPE_CHECKING:
    from lop_twap.core.domain.types import ExecutionSummary

LOGGER = logging.getLogger(__name__)

JOB_NAME: str = "lop_twap"


class PrometheusMetricsClient:
    """Prometheus Pushgateway client for one TWAP run.

    Expected environment:
    - PROMETHEUS_PUSHGATEWAY_URL: URL to the Pushgateway.
      Example: http://pushgateway.monitoring.svc.cluster.local:9091

    Optional:
    - PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON: JSON object used as grouping key,
      e.g. {"maker": "0xabc..."} so that runs of different makers do not
      overwrite each other.

    Pushing is a side effect: callers log failures and carry on.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        env = os.environ if environ is None else environ
        self._pushgateway_url = env.get("PROMETHEUS_PUSHGATEWAY_URL")
        self._grouping_key = self._load_grouping_key(env.get("PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON"))
        self._registry = CollectorRegistry()

    def is_enabled(self) -> bool:
        return bool(self._pushgateway_url)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def grouping_key(self) -> dict[str, str]:
        return dict(self._grouping_key)

    @staticmethod
    def _load_grouping_key(raw: str | None) -> dict[str, str]:
        if not raw:
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("Invalid PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON; ignoring")
            return {}

        if not isinstance(data, dict):
            return {}

        return {key: value for key, value in data.items() if isinstance(key, str) and isinstance(value, str)}

    def set_gauge(self, *, name: str, value: float, labels: dict[str, str]) -> None:
        gauge = Gauge(
            name,
            documentation=name,
            labelnames=list(labels.keys()),
            registry=self._registry,
        )
        gauge.labels(**labels).set(value)

    def set_run_summary(self, summary: ExecutionSummary, *, labels: dict[str, str]) -> None:
        """Register the gauges describing a finished run."""
        self.set_gauge(name="twap_slices_succeeded", value=summary.succeeded, labels=labels)
        self.set_gauge(name="twap_slices_failed", value=summary.failed, labels=labels)
        self.set_gauge(name="twap_slices_cancelled", value=summary.cancelled, labels=labels)
        self.set_gauge(name="twap_executed_amount", value=float(summary.executed_amount), labels=labels)

    def push_all(self, *, job: str = JOB_NAME) -> None:
        if not self._pushgateway_url:
            return

        push_to_gateway(
            gateway=self._pushgateway_url,
            job=job,
            registry=self._registry,
            grouping_key=self._grouping_key,
        )

        LOGGER.info(
            "Prometheus metrics pushed",
            extra={"job": job, "grouping_key": self._grouping_key},
        )
