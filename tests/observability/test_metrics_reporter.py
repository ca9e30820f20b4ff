import logging

from prospector.observability.metrics import MetricsReporter


def _metric_payloads(caplog):
    return [record.metrics for record in caplog.records if record.getMessage() == "discovery.metric"]


def test_stdout_backend_logs_namespaced_metric(caplog):
    caplog.set_level(logging.INFO, logger="prospector.metrics")
    reporter = MetricsReporter(backend="stdout", namespace="discovery", disabled=False, sample_rate=1.0)

    reporter.timing("engine_latency_ms", 12.34567, tags={"engine": "exa"})
    reporter.increment("discovery.engine_calls")

    payloads = _metric_payloads(caplog)
    assert payloads[0] == {
        "metric": "discovery.engine_latency_ms",
        "value": 12.3457,
        "type": "timing",
        "tags": {"engine": "exa"},
    }
    assert payloads[1]["metric"] == "discovery.engine_calls"
    assert payloads[1]["type"] == "counter"


def test_disabled_reporter_emits_nothing(caplog):
    caplog.set_level(logging.INFO, logger="prospector.metrics")
    reporter = MetricsReporter(backend="stdout", disabled=True)

    reporter.gauge("cache_size", 3)

    assert _metric_payloads(caplog) == []


def test_zero_sample_rate_drops_counters_but_keeps_gauges(caplog):
    caplog.set_level(logging.INFO, logger="prospector.metrics")
    reporter = MetricsReporter(backend="stdout", disabled=False, sample_rate=0.0)

    reporter.increment("engine_errors")
    reporter.gauge("usage_pct", 40)

    payloads = _metric_payloads(caplog)
    assert [payload["metric"] for payload in payloads] == ["discovery.usage_pct"]


def test_discovery_helpers_emit_tagged_metrics(caplog):
    caplog.set_level(logging.INFO, logger="prospector.metrics")
    reporter = MetricsReporter(backend="stdout", namespace="discovery", disabled=False, sample_rate=1.0)

    reporter.engine_call("exa", 25.0, cache_hit=True)
    reporter.engine_error("parallel", "PARALLEL_429", 40.0)
    reporter.search_cache_hit("name")
    reporter.discovery_latency("serper", 80.0, cache_hit=False)

    emitted = [(payload["metric"], payload["type"], payload["tags"]) for payload in _metric_payloads(caplog)]
    assert emitted == [
        ("discovery.engine_calls", "counter", {"engine": "exa", "cache": True}),
        ("discovery.engine_latency_ms", "timing", {"engine": "exa"}),
        ("discovery.engine_errors", "counter", {"engine": "parallel", "code": "PARALLEL_429"}),
        ("discovery.engine_latency_ms", "timing", {"engine": "parallel"}),
        ("discovery.cache_hit", "counter", {"kind": "name"}),
        ("discovery.latency_ms", "timing", {"engine": "serper", "cache": False}),
    ]
