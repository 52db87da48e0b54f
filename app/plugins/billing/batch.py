import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, Optional

import structlog

from metrics.metrics import MetricsCollector
from plugins.billing.directory import TenantDirectory
from plugins.billing.ledger import BillingLedger
from plugins.billing.models import (
    BatchResult,
    BatchTenantResult,
    BillCreate,
    BillItem,
    BillType,
    PeriodCheck,
)
from plugins.billing.store import BillStore
from utils.date_helper import billing_period_label, first_day_of_next_month, utcnow

logger = structlog.get_logger(__name__)

# one batch run per landlord at a time within this process
_landlord_locks: Dict[str, asyncio.Lock] = {}
_lock_holders: Dict[str, int] = defaultdict(int)


@asynccontextmanager
async def landlord_lock(landlord_id: str):
    """Hold the landlord's batch lock; the entry is dropped once nobody holds or awaits it."""
    lock = _landlord_locks.setdefault(landlord_id, asyncio.Lock())
    _lock_holders[landlord_id] += 1
    try:
        async with lock:
            yield
    finally:
        _lock_holders[landlord_id] -= 1
        if not _lock_holders[landlord_id]:
            del _lock_holders[landlord_id]
            del _landlord_locks[landlord_id]


def monthly_rent_bill(
    tenant_id: str,
    landlord_id: str,
    room_number: Optional[str],
    monthly_rent: float,
    billing_period: str,
    tenant_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BillCreate:
    return BillCreate(
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        landlord_id=landlord_id,
        room_number=room_number,
        billing_period=billing_period,
        bill_type=BillType.MONTHLY_RENT.value,
        total_amount=monthly_rent,
        due_date=first_day_of_next_month(now),
        description=f"Monthly rent for {billing_period}",
        items=[BillItem(description="Room Rental", amount=monthly_rent, category="rent")],
    )


class ExistenceGuard:
    """Advisory duplicate check run by the console before a batch; never blocks generation."""

    def __init__(self, store: BillStore):
        self.store = store

    async def bills_exist_for_period(self, landlord_id: str, billing_period: Optional[str] = None) -> PeriodCheck:
        billing_period = billing_period or billing_period_label()
        count = await self.store.count_for_period(landlord_id, billing_period, BillType.MONTHLY_RENT.value)
        return PeriodCheck(billing_period=billing_period, exists=count > 0, count=count)


class MonthlyRentBatchGenerator:
    """
    Creates one "Monthly Rent" bill per billable tenant of a property for the
    current calendar month.

    Per-tenant failures are captured in the result rather than aborting the run,
    and bills created before a failure stay in place.
    """

    def __init__(
        self,
        directory: TenantDirectory,
        ledger: BillingLedger,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.directory = directory
        self.ledger = ledger
        self.metrics = metrics

    async def generate_monthly_rent_bill(
        self,
        tenant_id: str,
        landlord_id: str,
        room_number: Optional[str],
        monthly_rent: float,
        billing_period: Optional[str] = None,
        tenant_name: Optional[str] = None,
    ) -> str:
        now = utcnow()
        bill = monthly_rent_bill(
            tenant_id,
            landlord_id,
            room_number,
            monthly_rent,
            billing_period or billing_period_label(now),
            tenant_name=tenant_name,
            now=now,
        )
        return await self.ledger.create_bill(bill, source="manual")

    async def generate_for_all_tenants(self, landlord_id: str, now: Optional[datetime] = None) -> BatchResult:
        async with landlord_lock(landlord_id):
            return await self._generate(landlord_id, now or utcnow())

    async def _generate(self, landlord_id: str, now: datetime) -> BatchResult:
        # a directory failure fails the whole call; nothing has been written yet
        tenants = await self.directory.list_tenants(landlord_id)
        billing_period = billing_period_label(now)

        logger.info("monthly_rent_batch_started", landlord_id=landlord_id, billing_period=billing_period, tenants=len(tenants))

        results = []
        skipped = 0
        for tenant in tenants:
            if not tenant.is_billable:
                skipped += 1
                continue

            bill = monthly_rent_bill(
                tenant.tenant_id,
                landlord_id,
                tenant.room_number,
                tenant.monthly_rent,
                billing_period,
                tenant_name=tenant.name,
                now=now,
            )
            try:
                bill_id = await self.ledger.create_bill(bill, source="batch")
                results.append(BatchTenantResult(
                    tenant_id=tenant.tenant_id,
                    tenant_name=tenant.name,
                    success=True,
                    bill_id=bill_id,
                ))
            except Exception as e:
                logger.error("monthly_rent_bill_failed", landlord_id=landlord_id, tenant_id=tenant.tenant_id, error=str(e))
                results.append(BatchTenantResult(
                    tenant_id=tenant.tenant_id,
                    tenant_name=tenant.name,
                    success=False,
                    error=str(e),
                ))

        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful
        if self.metrics:
            self.metrics.record_batch(created=successful, failed=failed, skipped=skipped)

        logger.info(
            "monthly_rent_batch_finished",
            landlord_id=landlord_id,
            billing_period=billing_period,
            total=len(tenants),
            successful=successful,
            failed=failed,
            skipped=skipped,
        )
        return BatchResult(
            billing_period=billing_period,
            total=len(tenants),
            successful=successful,
            failed=failed,
            results=results,
        )
