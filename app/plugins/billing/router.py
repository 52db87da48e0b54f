from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from plugins.billing.models import (
    BillCreate,
    BillStatus,
    Envelope,
    PaymentCreate,
    StatusUpdate,
    ok,
)
from plugins.billing.services import BillingServices
from utils.exceptions import ValidationFailedError

router = APIRouter()


def get_services(request: Request) -> BillingServices:
    db = request.app.state.adb
    metrics = getattr(request.app.state, "metrics", None)
    return BillingServices.from_db(db, metrics)


# ===============================================================
# BILLS
# ===============================================================

@router.post("/bills", response_model=Envelope)
async def create_bill(payload: BillCreate, services: BillingServices = Depends(get_services)):
    bill_id = await services.ledger.create_bill(payload)
    return ok({"bill_id": bill_id})


@router.get("/bills/{bill_id}", response_model=Envelope)
async def get_bill(bill_id: str, services: BillingServices = Depends(get_services)):
    return ok(await services.ledger.get_bill(bill_id))


@router.post("/bills/{bill_id}/payments", response_model=Envelope)
async def apply_payment(bill_id: str, payload: PaymentCreate, services: BillingServices = Depends(get_services)):
    """
    Record a payment against a bill.
    The amount must be positive and must not exceed the current remaining balance.
    """
    bill = await services.ledger.get_bill(bill_id)
    if payload.amount > bill.remaining_balance:
        raise ValidationFailedError("Payment amount cannot exceed remaining balance")

    result = await services.ledger.apply_payment(
        bill_id,
        payload.amount,
        payment_date=payload.payment_date,
        method=payload.method,
        notes=payload.notes,
    )
    return ok(result)


@router.get("/bills/{bill_id}/payments", response_model=Envelope)
async def list_payments(bill_id: str, services: BillingServices = Depends(get_services)):
    return ok(await services.ledger.list_payments(bill_id))


@router.patch("/bills/{bill_id}/status", response_model=Envelope)
async def set_bill_status(bill_id: str, payload: StatusUpdate, services: BillingServices = Depends(get_services)):
    bill = await services.ledger.set_bill_status(
        bill_id,
        payload.status,
        payment_amount=payload.payment_amount,
        payment_date=payload.payment_date,
    )
    return ok(bill)


@router.delete("/bills/{bill_id}", response_model=Envelope)
async def delete_bill(bill_id: str, services: BillingServices = Depends(get_services)):
    await services.ledger.delete_bill(bill_id)
    return ok({"bill_id": bill_id})


# ===============================================================
# TENANTS
# ===============================================================

@router.get("/tenants/{tenant_id}/bills", response_model=Envelope)
async def list_tenant_bills(tenant_id: str, services: BillingServices = Depends(get_services)):
    return ok(await services.ledger.list_bills_by_tenant(tenant_id))


@router.get("/tenants/{tenant_id}/balance", response_model=Envelope)
async def get_tenant_balance(tenant_id: str, services: BillingServices = Depends(get_services)):
    return ok(await services.ledger.get_tenant_balance(tenant_id))


@router.post("/tenants/{tenant_id}/sync", response_model=Envelope)
async def sync_tenant_status(tenant_id: str, services: BillingServices = Depends(get_services)):
    status = await services.synchronizer.recompute(tenant_id)
    return ok({"tenant_id": tenant_id, "payment_status": status.value})


# ===============================================================
# LANDLORDS
# ===============================================================

@router.get("/landlords/{landlord_id}/bills", response_model=Envelope)
async def list_landlord_bills(
    landlord_id: str,
    status: Optional[BillStatus] = Query(None),
    search: Optional[str] = Query(None, description="Tenant name, room number or billing period"),
    services: BillingServices = Depends(get_services),
):
    bills = await services.ledger.list_bills_by_landlord(
        landlord_id,
        status=status.value if status else None,
        search=search,
    )
    return ok(bills)


@router.get("/landlords/{landlord_id}/summary", response_model=Envelope)
async def summarize_bills(landlord_id: str, services: BillingServices = Depends(get_services)):
    return ok(await services.ledger.summarize(landlord_id))


@router.get("/landlords/{landlord_id}/monthly-rent/exists", response_model=Envelope)
async def check_period_exists(
    landlord_id: str,
    period: Optional[str] = Query(None, examples=["September 2025"]),
    services: BillingServices = Depends(get_services),
):
    return ok(await services.guard.bills_exist_for_period(landlord_id, period))


@router.post("/landlords/{landlord_id}/monthly-rent", response_model=Envelope)
async def generate_monthly_rent_bills(landlord_id: str, services: BillingServices = Depends(get_services)):
    """
    Bill every active tenant with a positive monthly rent for the current month.
    Per-tenant failures are reported in the result; check `failed`.
    """
    return ok(await services.batch.generate_for_all_tenants(landlord_id))


@router.post("/landlords/{landlord_id}/tenants/{tenant_id}/monthly-rent", response_model=Envelope)
async def generate_monthly_rent_bill(
    landlord_id: str,
    tenant_id: str,
    period: Optional[str] = Query(None),
    services: BillingServices = Depends(get_services),
):
    tenant = await services.directory.get_tenant(tenant_id)
    bill_id = await services.batch.generate_monthly_rent_bill(
        tenant.tenant_id,
        landlord_id,
        tenant.room_number,
        tenant.monthly_rent,
        billing_period=period,
        tenant_name=tenant.name,
    )
    return ok({"bill_id": bill_id})
