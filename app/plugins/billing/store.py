from functools import wraps
from typing import Any, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from core.config import settings
from plugins.billing.helpers import to_object_id
from plugins.billing.models import OPEN_STATUSES, Bill, BillType, PaymentRecord
from utils.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)


def store_call(func):
    """Translate driver failures into StoreUnavailableError."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error("store_call_failed", operation=func.__name__, error=str(e))
            raise StoreUnavailableError(f"Bill store unavailable: {e}") from e
    return wrapper


class BillStore:
    """
    Authoritative bill collection plus the payment-record trail.

    Bills are documents keyed by a store-assigned ObjectId and queried by
    tenant_id, landlord_id, bill_type and billing_period.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        bills_collection: Optional[str] = None,
        payments_collection: Optional[str] = None,
    ):
        self.db = db
        self.bills = db[bills_collection or settings.BILLS_COLLECTION]
        self.payments = db[payments_collection or settings.PAYMENTS_COLLECTION]

    # ---------------- bills ----------------

    @store_call
    async def insert(self, doc: Dict[str, Any]) -> str:
        result = await self.bills.insert_one(doc)
        return str(result.inserted_id)

    @store_call
    async def get(self, bill_id: str) -> Optional[Bill]:
        oid = to_object_id(bill_id)
        if oid is None:
            return None
        doc = await self.bills.find_one({"_id": oid})
        return Bill.model_validate(doc) if doc else None

    @store_call
    async def list_by_tenant(self, tenant_id: str) -> List[Bill]:
        cursor = self.bills.find({"tenant_id": tenant_id}).sort("created_at", DESCENDING)
        return [Bill.model_validate(d) for d in await cursor.to_list(length=None)]

    @store_call
    async def list_by_landlord(self, landlord_id: str, status: Optional[str] = None) -> List[Bill]:
        query: Dict[str, Any] = {"landlord_id": landlord_id}
        if status:
            query["status"] = status
        cursor = self.bills.find(query).sort("created_at", DESCENDING)
        return [Bill.model_validate(d) for d in await cursor.to_list(length=None)]

    @store_call
    async def list_open_by_tenant(self, tenant_id: str) -> List[Bill]:
        cursor = self.bills.find({"tenant_id": tenant_id, "status": {"$in": OPEN_STATUSES}})
        return [Bill.model_validate(d) for d in await cursor.to_list(length=None)]

    @store_call
    async def update(self, bill_id: str, fields: Dict[str, Any], expected_version: Optional[int] = None) -> bool:
        """
        Set `fields` on the bill and bump its version.

        With `expected_version` the write only lands if nobody else touched the
        bill since it was read; returns False when the filter matched nothing.
        """
        oid = to_object_id(bill_id)
        if oid is None:
            return False
        query: Dict[str, Any] = {"_id": oid}
        if expected_version is not None:
            if expected_version == 0:
                # documents written before versioning have no field at all
                query["$or"] = [{"version": 0}, {"version": {"$exists": False}}]
            else:
                query["version"] = expected_version
        result = await self.bills.update_one(query, {"$set": fields, "$inc": {"version": 1}})
        return result.matched_count > 0

    @store_call
    async def delete(self, bill_id: str) -> bool:
        oid = to_object_id(bill_id)
        if oid is None:
            return False
        result = await self.bills.delete_one({"_id": oid})
        return result.deleted_count > 0

    @store_call
    async def count_for_period(
        self,
        landlord_id: str,
        billing_period: str,
        bill_type: str = BillType.MONTHLY_RENT.value,
    ) -> int:
        return await self.bills.count_documents({
            "landlord_id": landlord_id,
            "bill_type": bill_type,
            "billing_period": billing_period,
        })

    # ---------------- payments ----------------

    @store_call
    async def insert_payment(self, doc: Dict[str, Any]) -> str:
        result = await self.payments.insert_one(doc)
        return str(result.inserted_id)

    @store_call
    async def list_payments(self, bill_id: str) -> List[PaymentRecord]:
        cursor = self.payments.find({"bill_id": bill_id}).sort("created_at", DESCENDING)
        return [PaymentRecord.model_validate(d) for d in await cursor.to_list(length=None)]
