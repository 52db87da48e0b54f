from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from core.MongoORJSONResponse import MongoModel
from plugins.billing.helpers import money


class BillStatus(str, Enum):
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# statuses that still count toward what a tenant owes
OPEN_STATUSES = [BillStatus.PENDING.value, BillStatus.PARTIALLY_PAID.value]


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"


class BillType(str, Enum):
    MONTHLY_RENT = "Monthly Rent"
    MONTHLY_BILL = "Monthly Bill"


def _object_id_to_str(v: Any) -> Any:
    if isinstance(v, ObjectId):
        return str(v)
    return v


# ---------------- Bill ----------------

class BillItem(BaseModel):
    description: str
    amount: float = Field(0.0, ge=0, allow_inf_nan=False)
    category: str = Field("other", validation_alias=AliasChoices("category", "type"))

    @field_validator("amount")
    def round_amount(cls, v: float) -> float:
        return money(v)


class BillCreate(BaseModel):
    """Fields the console supplies when issuing a bill."""
    tenant_id: str
    tenant_name: Optional[str] = None
    landlord_id: str
    room_number: Optional[str] = None
    billing_period: str = Field(..., min_length=1, examples=["September 2025"])
    bill_type: str = BillType.MONTHLY_BILL.value
    total_amount: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    due_date: Optional[datetime] = None
    description: Optional[str] = None
    items: List[BillItem] = Field(default_factory=list)

    @field_validator("room_number", mode="before")
    def coerce_room(cls, v):
        return None if v is None else str(v)

    @model_validator(mode="after")
    def default_total_from_items(self):
        if self.total_amount is None:
            self.total_amount = sum(i.amount for i in self.items)
        self.total_amount = money(self.total_amount)
        return self


class Bill(MongoModel):
    """A bill as read back from the store, with console defaults filled in."""
    id: Optional[str] = Field(None, validation_alias=AliasChoices("_id", "id"))
    tenant_id: Optional[str] = None
    tenant_name: str = "N/A"
    landlord_id: Optional[str] = None
    room_number: str = "N/A"
    billing_period: str = "N/A"
    bill_type: str = BillType.MONTHLY_BILL.value
    description: Optional[str] = None

    total_amount: float = 0.0
    payment_amount: float = 0.0
    remaining_balance: Optional[float] = None
    status: str = BillStatus.PENDING.value

    due_date: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    items: List[BillItem] = Field(default_factory=list)

    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator("id", "tenant_id", "landlord_id", mode="before")
    def stringify_ids(cls, v):
        return _object_id_to_str(v)

    @field_validator("tenant_name", "room_number", "billing_period", mode="before")
    def default_labels(cls, v):
        if v is None or v == "":
            return "N/A"
        return str(v)

    @field_validator("total_amount", "payment_amount", mode="before")
    def default_amounts(cls, v):
        return 0.0 if v is None else v

    @field_validator("status", mode="before")
    def default_status(cls, v):
        return v or BillStatus.PENDING.value

    @field_validator("items", mode="before")
    def default_items(cls, v):
        return v or []

    @model_validator(mode="after")
    def fill_remaining_balance(self):
        if self.remaining_balance is None:
            self.remaining_balance = self.total_amount
        return self

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


# ---------------- Payments ----------------

class PaymentCreate(BaseModel):
    amount: float = Field(
        ..., gt=0, allow_inf_nan=False,
        description="Amount received, must not exceed the remaining balance",
    )
    payment_date: Optional[datetime] = None
    method: str = "cash"
    notes: Optional[str] = None

    @field_validator("amount")
    def round_to_cents(cls, v: float) -> float:
        v = money(v)
        if v <= 0:
            raise ValueError("Payment amount must be at least 0.01")
        return v


class PaymentResult(BaseModel):
    status: str
    remaining_balance: float
    total_paid: float


class PaymentRecord(MongoModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("_id", "id"))
    bill_id: str
    tenant_id: Optional[str] = None
    landlord_id: Optional[str] = None
    amount: float
    payment_date: Optional[datetime] = None
    method: str = "cash"
    notes: Optional[str] = None
    resulting_status: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", "bill_id", "tenant_id", "landlord_id", mode="before")
    def stringify_ids(cls, v):
        return _object_id_to_str(v)


class StatusUpdate(BaseModel):
    status: BillStatus
    payment_amount: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    payment_date: Optional[datetime] = None

    @field_validator("payment_amount")
    def round_payment(cls, v: Optional[float]) -> Optional[float]:
        return None if v is None else money(v)


# ---------------- Tenants ----------------

class TenantRecord(BaseModel):
    """Subset of the tenant directory the ledger reads."""
    tenant_id: str
    name: str
    room_number: Optional[str] = None
    monthly_rent: float = 0.0
    is_active: bool = False
    payment_status: Optional[str] = None

    @property
    def is_billable(self) -> bool:
        return self.is_active and self.monthly_rent > 0


# ---------------- Batch / reads ----------------

class BatchTenantResult(BaseModel):
    tenant_id: str
    tenant_name: str
    success: bool
    bill_id: Optional[str] = None
    error: Optional[str] = None


class BatchResult(BaseModel):
    billing_period: str
    total: int
    successful: int
    failed: int
    results: List[BatchTenantResult] = Field(default_factory=list)


class PeriodCheck(BaseModel):
    billing_period: str
    exists: bool
    count: int


class TenantBalance(BaseModel):
    total_balance: float
    bills: List[Bill] = Field(default_factory=list)


class BillingSummary(BaseModel):
    bill_count: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    total_billed: float = 0.0
    total_collected: float = 0.0
    total_outstanding: float = 0.0


class Envelope(BaseModel):
    """Uniform {success, data, error} response body."""
    success: bool = True
    data: Optional[Any] = None
    error: Optional[str] = None


def ok(data: Any = None) -> Envelope:
    return Envelope(success=True, data=data)


def fail(error: str) -> Envelope:
    return Envelope(success=False, error=error)
