import logging

from fundbridge.observability.metrics import MetricsReporter


def _samples(caplog):
    return [record.metrics for record in caplog.records if hasattr(record, "metrics")]


def test_metric_names_are_namespaced_once():
    reporter = MetricsReporter(namespace="fundbridge", backend="stdout", sample_rate=1.0, disabled=False)

    assert reporter.qualify("fund_requests.transition") == "fundbridge.fund_requests.transition"
    assert reporter.qualify("fundbridge.analyses.errors") == "fundbridge.analyses.errors"
    assert reporter.qualify("") == "fundbridge"


def test_samples_are_logged_with_type_and_tags(caplog):
    reporter = MetricsReporter(namespace="fundbridge", backend="stdout", sample_rate=1.0, disabled=False)

    with caplog.at_level(logging.DEBUG, logger="fundbridge.metrics"):
        reporter.increment("billing.order.created", tags={"plan": "pro"})
        reporter.gauge("governance.hhi", 5000)

    samples = _samples(caplog)
    assert samples[0] == {
        "metric": "fundbridge.billing.order.created",
        "type": "counter",
        "value": 1.0,
        "tags": {"plan": "pro"},
    }
    assert samples[1]["type"] == "gauge"
    assert samples[1]["value"] == 5000.0


def test_disabled_reporter_emits_nothing(caplog):
    reporter = MetricsReporter(namespace="fundbridge", backend="statsd", disabled=True)

    with caplog.at_level(logging.DEBUG, logger="fundbridge.metrics"):
        reporter.timing("analyses.latency_ms", 12.5)
        reporter.alert("governance.hhi.high", value=5000, threshold=2500, severity="warning")

    assert _samples(caplog) == []


def test_zero_sample_rate_drops_counters_but_keeps_gauges(caplog):
    reporter = MetricsReporter(namespace="fundbridge", backend="stdout", sample_rate=0.0, disabled=False)

    with caplog.at_level(logging.DEBUG, logger="fundbridge.metrics"):
        reporter.increment("fund_requests.message.sent")
        reporter.gauge("governance.hhi", 1200)

    assert [sample["type"] for sample in _samples(caplog)] == ["gauge"]


def test_alert_carries_threshold_and_severity(caplog):
    reporter = MetricsReporter(namespace="fundbridge", backend="stdout", disabled=False)

    with caplog.at_level(logging.WARNING, logger="fundbridge.metrics"):
        reporter.alert("governance.hhi.high", value=5000, threshold=2500, severity="warning")

    (alert,) = _samples(caplog)
    assert alert["metric"] == "fundbridge.governance.hhi.high"
    assert alert["threshold"] == 2500.0
    assert alert["severity"] == "warning"
