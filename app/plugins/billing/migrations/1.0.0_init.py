from pymongo import ASCENDING, DESCENDING

from core.config import settings


def _indexes():
    return {
        settings.BILLS_COLLECTION: [
            ("bills_tenant_created", [("tenant_id", ASCENDING), ("created_at", DESCENDING)]),
            ("bills_landlord_created", [("landlord_id", ASCENDING), ("created_at", DESCENDING)]),
            ("bills_landlord_type_period", [
                ("landlord_id", ASCENDING),
                ("bill_type", ASCENDING),
                ("billing_period", ASCENDING),
            ]),
        ],
        settings.PAYMENTS_COLLECTION: [
            ("bill_payments_bill_created", [("bill_id", ASCENDING), ("created_at", DESCENDING)]),
        ],
        # tenants belong to the console; only these two indexes are ours
        settings.TENANTS_COLLECTION: [
            ("billing_tenants_user_id", [("user_id", ASCENDING)]),
            ("billing_tenants_property_id", [("property_id", ASCENDING)]),
        ],
    }


async def run(db):
    print("🚀 Initializing billing plugin indexes...")
    for collection, indexes in _indexes().items():
        for name, keys in indexes:
            await db[collection].create_index(keys, name=name)
    print("✅ billing plugin migration complete.")


async def rollback(db):
    for collection, indexes in _indexes().items():
        for name, _ in indexes:
            await db[collection].drop_index(name)
