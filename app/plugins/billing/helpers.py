# ===============================================================
# HELPERS
# ===============================================================
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from bson import ObjectId


def money(val) -> float:
    amount = Decimal(str(val or 0))
    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number, got {val!r}")
    return float(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_object_id(value) -> Optional[ObjectId]:
    """Parse a store id; None when it can't be an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def matches_search(bill, term: Optional[str]) -> bool:
    """Case-insensitive match over tenant name, room number and billing period."""
    if not term:
        return True
    term = term.strip().lower()
    return (
        term in (bill.tenant_name or "").lower()
        or term in str(bill.room_number or "").lower()
        or term in (bill.billing_period or "").lower()
    )
