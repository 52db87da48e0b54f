from prometheus_client import Counter, Histogram, CollectorRegistry, REGISTRY

from typing import Optional

# =====================================
# METRICS COLLECTOR
# =====================================

class MetricsCollector:
    """Prometheus metrics collector for the billing ledger"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        # Counter metrics
        self.bills_created_total = Counter(
            'billing_bills_created_total',
            'Total bills created',
            ['source', 'status'],  # source=manual|batch, status=success|failed
            registry=self.registry
        )

        self.payments_applied_total = Counter(
            'billing_payments_applied_total',
            'Total payments applied to bills',
            ['status'],  # resulting bill status
            registry=self.registry
        )

        self.payment_amount_total = Counter(
            'billing_payment_amount_total',
            'Sum of payment amounts applied',
            registry=self.registry
        )

        self.status_overrides_total = Counter(
            'billing_status_overrides_total',
            'Manual bill status changes',
            ['status'],
            registry=self.registry
        )

        self.bills_deleted_total = Counter(
            'billing_bills_deleted_total',
            'Total bills deleted',
            registry=self.registry
        )

        self.concurrency_conflicts_total = Counter(
            'billing_concurrency_conflicts_total',
            'Optimistic concurrency conflicts on bill writes',
            ['operation'],
            registry=self.registry
        )

        self.rollup_syncs_total = Counter(
            'billing_rollup_syncs_total',
            'Tenant payment status recomputations',
            ['outcome'],  # outcome=paid|pending|failed
            registry=self.registry
        )

        self.batch_runs_total = Counter(
            'billing_batch_runs_total',
            'Monthly rent batch runs',
            registry=self.registry
        )

        self.batch_tenants_total = Counter(
            'billing_batch_tenants_total',
            'Per-tenant outcomes of monthly rent batch runs',
            ['outcome'],  # outcome=created|failed|skipped
            registry=self.registry
        )

        # Histogram metrics
        self.ledger_operation_duration = Histogram(
            'billing_ledger_operation_duration_seconds',
            'Ledger operation duration',
            ['operation'],
            registry=self.registry
        )

    def record_bill_created(self, source: str, success: bool):
        self.bills_created_total.labels(
            source=source,
            status="success" if success else "failed"
        ).inc()

    def record_payment(self, status: str, amount: float):
        self.payments_applied_total.labels(status=status).inc()
        self.payment_amount_total.inc(amount)

    def record_status_override(self, status: str):
        self.status_overrides_total.labels(status=status).inc()

    def record_conflict(self, operation: str):
        self.concurrency_conflicts_total.labels(operation=operation).inc()

    def record_rollup_sync(self, outcome: str):
        self.rollup_syncs_total.labels(outcome=outcome).inc()

    def record_batch(self, created: int, failed: int, skipped: int):
        self.batch_runs_total.inc()
        self.batch_tenants_total.labels(outcome="created").inc(created)
        self.batch_tenants_total.labels(outcome="failed").inc(failed)
        self.batch_tenants_total.labels(outcome="skipped").inc(skipped)

    def time_operation(self, operation: str):
        """Context manager timing a ledger operation"""
        return self.ledger_operation_duration.labels(operation=operation).time()

# Global metrics instance
_metrics_collector = MetricsCollector()

def get_metrics() -> MetricsCollector:
    """Dependency to get metrics collector"""
    return _metrics_collector
