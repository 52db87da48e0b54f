from typing import Any, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from core.config import settings
from plugins.billing.helpers import money, to_object_id
from plugins.billing.models import PaymentStatus, TenantRecord
from plugins.billing.store import store_call
from utils.date_helper import utcnow
from utils.exceptions import TenantNotFoundError

logger = structlog.get_logger(__name__)


def tenant_from_doc(doc: Dict[str, Any]) -> TenantRecord:
    """Bills reference tenants by their auth user id, falling back to the document id."""
    name = doc.get("full_name") or " ".join(
        p for p in (doc.get("first_name"), doc.get("last_name")) if p
    )
    room = doc.get("room_number")
    return TenantRecord(
        tenant_id=str(doc.get("user_id") or doc["_id"]),
        name=name or "N/A",
        room_number=None if room is None else str(room),
        monthly_rent=money(doc.get("monthly_rent") or 0),
        is_active=bool(doc.get("is_active", False)),
        payment_status=doc.get("payment_status"),
    )


class TenantDirectory:
    """Reader/writer over the tenant collection owned by the property console."""

    def __init__(self, db: AsyncIOMotorDatabase, collection: Optional[str] = None):
        self.tenants = db[collection or settings.TENANTS_COLLECTION]

    @store_call
    async def list_tenants(self, property_id: str) -> List[TenantRecord]:
        """Every tenant of the property, active or not, newest first."""
        cursor = self.tenants.find({"property_id": property_id}).sort("created_at", DESCENDING)
        return [tenant_from_doc(d) for d in await cursor.to_list(length=None)]

    @store_call
    async def get_tenant(self, tenant_id: str) -> TenantRecord:
        doc = await self.tenants.find_one({"user_id": tenant_id})
        if doc is None and to_object_id(tenant_id) is not None:
            doc = await self.tenants.find_one({"_id": to_object_id(tenant_id)})
        if doc is None:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")
        return tenant_from_doc(doc)

    @store_call
    async def set_payment_status(self, tenant_id: str, payment_status: PaymentStatus) -> None:
        update = {"$set": {"payment_status": payment_status.value, "updated_at": utcnow()}}
        result = await self.tenants.update_one({"user_id": tenant_id}, update)
        if result.matched_count == 0 and to_object_id(tenant_id) is not None:
            result = await self.tenants.update_one({"_id": to_object_id(tenant_id)}, update)
        if result.matched_count == 0:
            logger.warning("tenant_rollup_target_missing", tenant_id=tenant_id)
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")
