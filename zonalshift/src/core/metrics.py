#!/usr/bin/env python3
"""
Prometheus metrics for the zonal shift reconciler
"""

from prometheus_client import Counter, Histogram

NOTIFICATIONS = Counter(
    'zonal_shift_notifications_total',
    'Deliveries received on the ingestion endpoint',
    ['kind']
)
DISPATCH_REJECTED = Counter(
    'zonal_shift_dispatch_rejected_total',
    'Events rejected because the worker pool was saturated'
)
RECONCILE_PASSES = Counter(
    'zonal_shift_passes_total',
    'Reconciliation passes by branch and status',
    ['branch', 'status']
)
POOL_OUTCOMES = Counter(
    'zonal_shift_pool_outcomes_total',
    'Per node pool reconciliation outcomes',
    ['outcome']
)
PASS_DURATION = Histogram(
    'zonal_shift_pass_duration_seconds',
    'Time taken for one reconciliation pass'
)


def record_result(result) -> None:
    """Count a finished ReconcileResult"""
    branch = result.branch.value if result.branch else "none"
    RECONCILE_PASSES.labels(branch=branch, status=result.status).inc()
    for pool in result.pools:
        POOL_OUTCOMES.labels(outcome=pool.outcome.value).inc()
    if result.finished_at:
        PASS_DURATION.observe((result.finished_at - result.started_at).total_seconds())
