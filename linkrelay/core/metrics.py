"""
LinkRelay Prometheus metrics, exposed by the ASGI app mounted at /metrics.
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram

PIPELINE_RUNS = Counter(
    "linkrelay_pipeline_runs_total",
    "Retrieval-dispatch pipeline runs by final outcome",
    ["outcome"],  # uploaded | failed | skipped | error
)

STAGE_FAILURES = Counter(
    "linkrelay_pipeline_stage_failures_total",
    "Pipeline failures by stage",
    ["stage"],  # metadata | download | upload | cleanup
)

STAGE_SECONDS = Histogram(
    "linkrelay_pipeline_stage_seconds",
    "Wall time spent in each pipeline stage",
    ["stage"],
    buckets=(0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600),
)
