"""Counters, gauges and timings for the service, mirrored to logs and optionally StatsD."""

from __future__ import annotations

import logging
import secrets
from typing import Any

from statsd import StatsClient

from fundbridge.config import settings

logger = logging.getLogger("fundbridge.metrics")

COUNTER = "counter"
GAUGE = "gauge"
TIMING = "timing"


def _clamp_rate(rate: float) -> float:
    return max(0.0, min(rate, 1.0))


class MetricsReporter:
    """Every sample is logged at DEBUG; the statsd backend also ships it over UDP."""

    def __init__(
        self,
        *,
        namespace: str | None = None,
        backend: str | None = None,
        sample_rate: float | None = None,
        disabled: bool | None = None,
    ) -> None:
        self.namespace = (namespace or settings.metrics_namespace or "fundbridge").strip(".")
        self.backend = (backend or settings.metrics_backend or "stdout").lower()
        self.sample_rate = _clamp_rate(
            settings.metrics_sample_rate if sample_rate is None else sample_rate
        )
        self.disabled = settings.metrics_disable if disabled is None else disabled
        self._client: StatsClient | None = None
        if self.backend == "statsd" and not self.disabled:
            self._client = self._connect()

    def _connect(self) -> StatsClient | None:
        try:
            return StatsClient(
                host=settings.metrics_statsd_host,
                port=settings.metrics_statsd_port,
                prefix="",
            )
        except OSError as exc:  # pragma: no cover - unresolvable host
            self._backend_failed("statsd.connect", exc)
            return None

    def increment(
        self, metric: str, value: float = 1.0, *, tags: dict[str, Any] | None = None
    ) -> None:
        self._record(COUNTER, metric, value, tags)

    def gauge(self, metric: str, value: float, *, tags: dict[str, Any] | None = None) -> None:
        self._record(GAUGE, metric, value, tags)

    def timing(self, metric: str, value_ms: float, *, tags: dict[str, Any] | None = None) -> None:
        self._record(TIMING, metric, value_ms, tags)

    def alert(
        self,
        metric: str,
        *,
        value: float,
        threshold: float,
        severity: str,
        tags: dict[str, Any] | None = None,
    ) -> None:
        """Log a threshold breach so log-based alert rules can pick it up."""
        if self.disabled:
            return
        logger.warning(
            f"{self.namespace}.alert",
            extra={
                "metrics": {
                    "metric": self.qualify(metric),
                    "value": round(float(value), 4),
                    "threshold": round(float(threshold), 4),
                    "severity": severity,
                    "schema_version": settings.metrics_schema_version,
                    "tags": dict(tags or {}),
                }
            },
        )

    def qualify(self, metric: str) -> str:
        name = (metric or "").strip(". ")
        if not name:
            return self.namespace
        if name == self.namespace or name.startswith(self.namespace + "."):
            return name
        return f"{self.namespace}.{name}"

    def _effective_rate(self, kind: str) -> float | None:
        """Rate to report with, or None when the sample is dropped."""
        if kind == GAUGE or self.sample_rate >= 1.0:
            return 1.0
        if self.sample_rate <= 0.0:
            return None
        if secrets.randbelow(1_000_000) / 1_000_000 > self.sample_rate:
            return None
        return self.sample_rate

    def _record(
        self, kind: str, metric: str, value: float | None, tags: dict[str, Any] | None
    ) -> None:
        if self.disabled or value is None:
            return
        rate = self._effective_rate(kind)
        if rate is None:
            return
        name = self.qualify(metric)
        sample: dict[str, Any] = {
            "metric": name,
            "type": kind,
            "value": round(float(value), 4),
            "tags": dict(tags or {}),
        }
        if rate < 1.0:
            sample["sample_rate"] = round(rate, 4)
        logger.debug(f"{self.namespace}.metric", extra={"metrics": sample})
        if self._client is not None:
            self._ship(kind, name, value, rate)

    def _ship(self, kind: str, name: str, value: float, rate: float) -> None:
        assert self._client is not None
        try:
            if kind == GAUGE:
                self._client.gauge(name, value)
            elif kind == TIMING:
                self._client.timing(name, value, rate=rate)
            else:
                self._client.incr(name, value, rate=rate)
        except OSError as exc:  # pragma: no cover - UDP send failure
            self._backend_failed(name, exc)

    def _backend_failed(self, metric: str, exc: Exception) -> None:
        logger.warning(
            "metrics.backend_error",
            extra={"metric": metric, "backend": self.backend, "error": type(exc).__name__},
        )


metrics = MetricsReporter()
