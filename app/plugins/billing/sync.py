from typing import Iterable, Optional

import structlog

from metrics.metrics import MetricsCollector
from plugins.billing.directory import TenantDirectory
from plugins.billing.models import Bill, BillStatus, PaymentStatus
from plugins.billing.store import BillStore

logger = structlog.get_logger(__name__)


def compute_payment_status(bills: Iterable[Bill]) -> PaymentStatus:
    """
    Rollup of a tenant's bill set.

    No bills means nothing is owed. Otherwise any bill not in `Paid` (Cancelled,
    Refunded and Overdue included) keeps the tenant `Pending`.
    """
    bills = list(bills)
    if not bills:
        return PaymentStatus.PAID
    for bill in bills:
        if (bill.status or "").lower() != BillStatus.PAID.value.lower():
            return PaymentStatus.PENDING
    return PaymentStatus.PAID


class TenantStatusSynchronizer:
    """Recomputes the denormalized tenant payment_status from all of the tenant's bills."""

    def __init__(
        self,
        store: BillStore,
        directory: TenantDirectory,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.directory = directory
        self.metrics = metrics

    async def recompute(self, tenant_id: str) -> PaymentStatus:
        """Full recomputation; raises on store or directory failure."""
        bills = await self.store.list_by_tenant(tenant_id)
        status = compute_payment_status(bills)
        await self.directory.set_payment_status(tenant_id, status)
        logger.info("tenant_rollup_synced", tenant_id=tenant_id, payment_status=status.value, bills=len(bills))
        if self.metrics:
            self.metrics.record_rollup_sync(status.value.lower())
        return status

    async def sync_quietly(self, tenant_id: Optional[str]) -> Optional[PaymentStatus]:
        """
        Best-effort variant used after ledger mutations. Failures are logged and
        swallowed so the triggering bill write still counts as successful.
        """
        if not tenant_id:
            return None
        try:
            return await self.recompute(tenant_id)
        except Exception as e:
            logger.error("tenant_rollup_sync_failed", tenant_id=tenant_id, error=str(e), exc_info=True)
            if self.metrics:
                self.metrics.record_rollup_sync("failed")
            return None
