"""Tests for audit pipeline metrics."""

from holder_audit.metrics import AuditMetrics


def test_record_run_and_dedup():
    m = AuditMetrics()
    m.record_run("audit", 120.0)
    m.record_run("audit", 30.0, deduped=True)

    summary = m.get_summary()["operations"]["audit"]
    assert summary["runs"] == 2
    assert summary["deduped"] == 1
    assert summary["avg_latency_ms"] == 75
    assert summary["max_latency_ms"] == 120


def test_failures_by_source():
    m = AuditMetrics()
    m.record_failure("audit", "helius")
    m.record_failure("compare", "helius")
    m.record_failure("audit")

    summary = m.get_summary()
    assert summary["fetch_errors"] == {"helius": 2}
    assert summary["operations"]["audit"]["failed"] == 2


def test_enrichment_failures_do_not_count_as_runs():
    m = AuditMetrics()
    m.record_enrichment_failure("audit")
    summary = m.get_summary()["operations"]["audit"]
    assert summary["runs"] == 0
    assert summary["enrichment_failures"] == 1


def test_stats_line():
    m = AuditMetrics()
    m.record_run("audit", 10.0)
    m.record_run("compare", 10.0)
    line = m.format_stats_line()
    assert "audits=1" in line
    assert "compares=1" in line
