from collections import Counter
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from core.config import settings
from metrics.metrics import MetricsCollector
from plugins.billing.helpers import matches_search, money
from plugins.billing.models import (
    OPEN_STATUSES,
    Bill,
    BillCreate,
    BillingSummary,
    BillStatus,
    PaymentRecord,
    PaymentResult,
    TenantBalance,
)
from plugins.billing.store import BillStore
from plugins.billing.sync import TenantStatusSynchronizer
from utils.date_helper import ensure_datetime, utcnow
from utils.exceptions import BillNotFoundError, BillingError, ConcurrentUpdateError

logger = structlog.get_logger(__name__)

# bills that still carry a collectable balance on the landlord's books
OUTSTANDING_STATUSES = OPEN_STATUSES + [BillStatus.OVERDUE.value]


# ---------------- pure balance rules ----------------

def payment_outcome(bill: Bill, amount: float) -> Tuple[str, float, float]:
    """Return (status, total_paid, remaining_balance) after adding `amount`."""
    total_paid = money(bill.payment_amount + amount)
    if total_paid >= bill.total_amount:
        return BillStatus.PAID.value, total_paid, 0.0
    return BillStatus.PARTIALLY_PAID.value, total_paid, money(bill.total_amount - total_paid)


def status_override_fields(bill: Bill, status: BillStatus, payment_amount: Optional[float] = None) -> Dict[str, Any]:
    """
    Balance fields written alongside a manual status change.

    An explicit payment_amount replaces the paid total. Without one the balance is
    made consistent with the target status instead of being left stale.
    """
    status = BillStatus(status)
    if payment_amount is not None:
        paid = money(payment_amount)
        return {
            "payment_amount": paid,
            "remaining_balance": money(max(0.0, bill.total_amount - paid)),
        }
    if status == BillStatus.PAID:
        return {"payment_amount": bill.total_amount, "remaining_balance": 0.0}
    if status in (BillStatus.CANCELLED, BillStatus.REFUNDED):
        return {"remaining_balance": 0.0}
    return {"remaining_balance": money(max(0.0, bill.total_amount - bill.payment_amount))}


class BillingLedger:
    """
    Owns the bill lifecycle: create, apply payment, manual status override, delete.

    Every mutation is followed by a best-effort tenant rollup resync. Read-modify-write
    paths are guarded by the bill's version field and retried on conflict.
    """

    def __init__(
        self,
        store: BillStore,
        synchronizer: TenantStatusSynchronizer,
        metrics: Optional[MetricsCollector] = None,
        max_retries: Optional[int] = None,
    ):
        self.store = store
        self.synchronizer = synchronizer
        self.metrics = metrics
        self.max_retries = max_retries or settings.PAYMENT_MAX_RETRIES

    def _timer(self, operation: str):
        return self.metrics.time_operation(operation) if self.metrics else nullcontext()

    async def _mutate(
        self,
        bill_id: str,
        operation: str,
        compute: Callable[[Bill], Dict[str, Any]],
    ) -> Tuple[Bill, Dict[str, Any]]:
        """Read the bill, compute new fields, and write them if the version still matches."""
        for attempt in range(1, self.max_retries + 1):
            bill = await self.store.get(bill_id)
            if bill is None:
                raise BillNotFoundError(f"Bill {bill_id} not found")
            fields = compute(bill)
            fields["updated_at"] = utcnow()
            if await self.store.update(bill_id, fields, expected_version=bill.version):
                return bill, fields
            logger.warning("bill_version_conflict", bill_id=bill_id, operation=operation, attempt=attempt)
            if self.metrics:
                self.metrics.record_conflict(operation)
        raise ConcurrentUpdateError(
            f"Bill {bill_id} changed {self.max_retries} times while applying {operation}"
        )

    # ---------------- mutations ----------------

    async def create_bill(self, data: BillCreate, source: str = "manual") -> str:
        now = utcnow()
        doc = data.model_dump()
        doc.update({
            "description": data.description or f"Bill for {data.billing_period}",
            "due_date": ensure_datetime(data.due_date),
            "status": BillStatus.PENDING.value,
            "payment_amount": 0.0,
            "remaining_balance": data.total_amount,
            "version": 0,
            "created_at": now,
            "updated_at": now,
        })

        with self._timer("create_bill"):
            try:
                bill_id = await self.store.insert(doc)
            except BillingError:
                if self.metrics:
                    self.metrics.record_bill_created(source, success=False)
                raise

        logger.info(
            "bill_created",
            bill_id=bill_id,
            tenant_id=data.tenant_id,
            billing_period=data.billing_period,
            total_amount=data.total_amount,
            source=source,
        )
        if self.metrics:
            self.metrics.record_bill_created(source, success=True)

        await self.synchronizer.sync_quietly(data.tenant_id)
        return bill_id

    async def apply_payment(
        self,
        bill_id: str,
        amount: float,
        payment_date: Optional[datetime] = None,
        method: str = "cash",
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """
        Add `amount` to the bill's paid total and derive status and balance.
        Input validation (positive, within balance) is the caller's job.
        """
        paid_on = ensure_datetime(payment_date) or utcnow()

        def compute(bill: Bill) -> Dict[str, Any]:
            status, total_paid, remaining = payment_outcome(bill, amount)
            return {
                "status": status,
                "payment_amount": total_paid,
                "remaining_balance": remaining,
                "payment_date": paid_on,
            }

        with self._timer("apply_payment"):
            bill, fields = await self._mutate(bill_id, "apply_payment", compute)

        result = PaymentResult(
            status=fields["status"],
            remaining_balance=fields["remaining_balance"],
            total_paid=fields["payment_amount"],
        )
        logger.info(
            "payment_applied",
            bill_id=bill_id,
            tenant_id=bill.tenant_id,
            amount=amount,
            status=result.status,
            remaining_balance=result.remaining_balance,
        )
        if self.metrics:
            self.metrics.record_payment(result.status, amount)

        await self._record_payment(bill, amount, paid_on, method, notes, result.status)
        await self.synchronizer.sync_quietly(bill.tenant_id)
        return result

    async def _record_payment(self, bill: Bill, amount, paid_on, method, notes, resulting_status) -> None:
        try:
            await self.store.insert_payment({
                "bill_id": bill.id,
                "tenant_id": bill.tenant_id,
                "landlord_id": bill.landlord_id,
                "amount": money(amount),
                "payment_date": paid_on,
                "method": method,
                "notes": notes,
                "resulting_status": resulting_status,
                "created_at": utcnow(),
            })
        except BillingError as e:
            logger.error("payment_record_failed", bill_id=bill.id, error=str(e))

    async def set_bill_status(
        self,
        bill_id: str,
        status: BillStatus,
        payment_amount: Optional[float] = None,
        payment_date: Optional[datetime] = None,
    ) -> Bill:
        """Overwrite the status unconditionally; balance fields follow the target status."""
        status = BillStatus(status)

        def compute(bill: Bill) -> Dict[str, Any]:
            fields = {"status": status.value}
            fields.update(status_override_fields(bill, status, payment_amount))
            if payment_amount is not None:
                fields["payment_date"] = ensure_datetime(payment_date) or utcnow()
            return fields

        with self._timer("set_bill_status"):
            bill, fields = await self._mutate(bill_id, "set_bill_status", compute)

        logger.info("bill_status_set", bill_id=bill_id, previous=bill.status, status=status.value)
        if self.metrics:
            self.metrics.record_status_override(status.value)

        await self.synchronizer.sync_quietly(bill.tenant_id)
        return bill.model_copy(update={**fields, "version": bill.version + 1})

    async def delete_bill(self, bill_id: str) -> None:
        bill = await self.store.get(bill_id)
        if bill is None:
            raise BillNotFoundError(f"Bill {bill_id} not found")

        with self._timer("delete_bill"):
            if not await self.store.delete(bill_id):
                raise BillNotFoundError(f"Bill {bill_id} not found")

        logger.info("bill_deleted", bill_id=bill_id, tenant_id=bill.tenant_id)
        if self.metrics:
            self.metrics.bills_deleted_total.inc()

        await self.synchronizer.sync_quietly(bill.tenant_id)

    # ---------------- reads ----------------

    async def get_bill(self, bill_id: str) -> Bill:
        bill = await self.store.get(bill_id)
        if bill is None:
            raise BillNotFoundError(f"Bill {bill_id} not found")
        return bill

    async def list_bills_by_tenant(self, tenant_id: str) -> List[Bill]:
        return await self.store.list_by_tenant(tenant_id)

    async def list_bills_by_landlord(
        self,
        landlord_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Bill]:
        bills = await self.store.list_by_landlord(landlord_id, status=status)
        return [b for b in bills if matches_search(b, search)]

    async def list_payments(self, bill_id: str) -> List[PaymentRecord]:
        return await self.store.list_payments(bill_id)

    async def get_tenant_balance(self, tenant_id: str) -> TenantBalance:
        bills = await self.store.list_open_by_tenant(tenant_id)
        total = money(sum(b.remaining_balance for b in bills))
        return TenantBalance(total_balance=total, bills=bills)

    async def summarize(self, landlord_id: str) -> BillingSummary:
        bills = await self.store.list_by_landlord(landlord_id)
        by_status = Counter(b.status for b in bills)
        return BillingSummary(
            bill_count=len(bills),
            by_status=dict(by_status),
            total_billed=money(sum(b.total_amount for b in bills)),
            total_collected=money(sum(b.payment_amount for b in bills)),
            total_outstanding=money(sum(
                b.remaining_balance for b in bills if b.status in OUTSTANDING_STATUSES
            )),
        )
