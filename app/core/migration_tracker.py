from pymongo import ASCENDING, DESCENDING

from utils.date_helper import utcnow


class MigrationTracker:
    """Ledger of plugin migrations applied to this database (`plugin_migrations`)."""

    ACTIVE = {"rolled_back": {"$ne": True}}

    def __init__(self, db):
        self.collection = db["plugin_migrations"]

    async def applied_files(self, plugin: str) -> set:
        cursor = self.collection.find({"plugin": plugin, **self.ACTIVE}).sort("applied_at", ASCENDING)
        return {m["file"] for m in await cursor.to_list(None)}

    async def last_applied(self, plugin: str):
        cursor = self.collection.find({"plugin": plugin, **self.ACTIVE}).sort("applied_at", DESCENDING).limit(1)
        found = await cursor.to_list(1)
        return found[0] if found else None

    async def record(self, plugin: str, version: str, file_name: str) -> None:
        await self.collection.insert_one({
            "plugin": plugin,
            "version": version,
            "file": file_name,
            "applied_at": utcnow(),
        })

    async def mark_rollback(self, plugin: str, version: str) -> None:
        await self.collection.update_one(
            {"plugin": plugin, "version": version, **self.ACTIVE},
            {"$set": {"rolled_back": True, "rolled_back_at": utcnow()}},
        )
