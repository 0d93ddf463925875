"""Audit pipeline metrics: run counts, dedup hits, failures, latency.

Lock-guarded counters that accumulate during runtime and can be read by
a stats reporter while audits are in flight.
"""

import time
from dataclasses import dataclass
from threading import Lock


@dataclass
class OperationMetrics:
    """Counters for one entry point (audit or compare)."""

    total_runs: int = 0
    deduped: int = 0
    failed: int = 0
    enrichment_failures: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0

    @property
    def completed(self) -> int:
        return self.total_runs - self.failed

    @property
    def avg_latency_ms(self) -> float:
        if self.completed <= 0:
            return 0.0
        return self.total_latency_ms / self.completed


class AuditMetrics:
    def __init__(self) -> None:
        self._lock = Lock()
        self._ops: dict[str, OperationMetrics] = {}
        self._fetch_errors: dict[str, int] = {}
        self._start_time: float = time.monotonic()

    def _get_op(self, name: str) -> OperationMetrics:
        if name not in self._ops:
            self._ops[name] = OperationMetrics()
        return self._ops[name]

    def record_run(self, op: str, latency_ms: float, *, deduped: bool = False) -> None:
        with self._lock:
            om = self._get_op(op)
            om.total_runs += 1
            om.total_latency_ms += latency_ms
            if latency_ms > om.max_latency_ms:
                om.max_latency_ms = latency_ms
            if deduped:
                om.deduped += 1

    def record_failure(self, op: str, source: str | None = None) -> None:
        with self._lock:
            om = self._get_op(op)
            om.total_runs += 1
            om.failed += 1
            if source:
                self._fetch_errors[source] = self._fetch_errors.get(source, 0) + 1

    def record_enrichment_failure(self, op: str = "audit") -> None:
        with self._lock:
            self._get_op(op).enrichment_failures += 1

    def get_summary(self) -> dict:
        with self._lock:
            uptime = time.monotonic() - self._start_time
            return {
                "uptime_sec": round(uptime),
                "fetch_errors": dict(self._fetch_errors),
                "operations": {
                    name: {
                        "runs": om.total_runs,
                        "deduped": om.deduped,
                        "failed": om.failed,
                        "enrichment_failures": om.enrichment_failures,
                        "avg_latency_ms": round(om.avg_latency_ms),
                        "max_latency_ms": round(om.max_latency_ms),
                    }
                    for name, om in self._ops.items()
                },
            }

    def format_stats_line(self) -> str:
        """One-line summary for the stats reporter."""
        with self._lock:
            audit = self._ops.get("audit", OperationMetrics())
            compare = self._ops.get("compare", OperationMetrics())
            return (
                f"audits={audit.total_runs} deduped={audit.deduped} "
                f"failed={audit.failed} enrich_fail={audit.enrichment_failures} "
                f"compares={compare.total_runs} "
                f"avg_lat={audit.avg_latency_ms:.0f}ms"
            )


# Global singleton, shared by the service and the CLI stats line
metrics = AuditMetrics()
