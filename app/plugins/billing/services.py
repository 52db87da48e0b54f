from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from metrics.metrics import MetricsCollector
from plugins.billing.batch import ExistenceGuard, MonthlyRentBatchGenerator
from plugins.billing.directory import TenantDirectory
from plugins.billing.ledger import BillingLedger
from plugins.billing.store import BillStore
from plugins.billing.sync import TenantStatusSynchronizer


@dataclass
class BillingServices:
    store: BillStore
    directory: TenantDirectory
    synchronizer: TenantStatusSynchronizer
    ledger: BillingLedger
    batch: MonthlyRentBatchGenerator
    guard: ExistenceGuard

    @classmethod
    def from_db(cls, db: AsyncIOMotorDatabase, metrics: Optional[MetricsCollector] = None) -> "BillingServices":
        store = BillStore(db)
        directory = TenantDirectory(db)
        synchronizer = TenantStatusSynchronizer(store, directory, metrics)
        ledger = BillingLedger(store, synchronizer, metrics)
        return cls(
            store=store,
            directory=directory,
            synchronizer=synchronizer,
            ledger=ledger,
            batch=MonthlyRentBatchGenerator(directory, ledger, metrics),
            guard=ExistenceGuard(store),
        )
