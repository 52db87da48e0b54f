# test/conftest.py - shared fixtures for the billing plugin tests

import copy
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure

from plugins.billing.batch import ExistenceGuard, MonthlyRentBatchGenerator
from plugins.billing.directory import TenantDirectory
from plugins.billing.ledger import BillingLedger
from plugins.billing.store import BillStore
from plugins.billing.sync import TenantStatusSynchronizer


# =====================================
# IN-MEMORY MOTOR STAND-IN
# =====================================

def _matches(doc, query):
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, q) for q in cond):
                return False
            continue
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, value in cond.items():
                if op == "$in" and doc.get(key) not in value:
                    return False
                if op == "$ne" and doc.get(key) == value:
                    return False
                if op == "$exists" and (key in doc) != bool(value):
                    return False
            continue
        if doc.get(key) != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction=1):
        keys = key if isinstance(key, list) else [(key, direction)]
        for field, order in reversed(keys):
            self.docs.sort(key=lambda d: (d.get(field) is not None, d.get(field)), reverse=order == -1)
        return self

    def limit(self, n):
        self.docs = self.docs[:n]
        return self

    async def to_list(self, length=None):
        docs = self.docs if length is None else self.docs[:length]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.indexes = {}

    def seed(self, *docs):
        for doc in docs:
            doc.setdefault("_id", ObjectId())
            self.docs.append(copy.deepcopy(doc))

    async def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        return FakeCursor([d for d in self.docs if _matches(d, query or {})])

    async def update_one(self, query, update):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                for field, step in update.get("$inc", {}).items():
                    doc[field] = doc.get(field, 0) + step
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def count_documents(self, query):
        return sum(1 for d in self.docs if _matches(d, query))

    async def create_index(self, keys, name=None, **kwargs):
        keys = [(keys, 1)] if isinstance(keys, str) else keys
        name = name or "_".join(f"{k}_{d}" for k, d in keys)
        self.indexes[name] = keys
        return name

    async def drop_index(self, name):
        if name not in self.indexes:
            raise OperationFailure(f"index not found with name [{name}]")
        del self.indexes[name]


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


# =====================================
# FIXTURES
# =====================================

LANDLORD_ID = "landlord-1"


def tenant_doc(user_id, monthly_rent=5000, is_active=True, property_id=LANDLORD_ID, **extra):
    doc = {
        "user_id": user_id,
        "property_id": property_id,
        "first_name": user_id.title(),
        "last_name": "Doe",
        "room_number": 101,
        "monthly_rent": monthly_rent,
        "is_active": is_active,
        "payment_status": "Paid",
    }
    doc.update(extra)
    return doc


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def tenants(db):
    return db["tenants"]


@pytest.fixture
def store(db):
    return BillStore(db, bills_collection="bills", payments_collection="bill_payments")


@pytest.fixture
def directory(db):
    return TenantDirectory(db, collection="tenants")


@pytest.fixture
def synchronizer(store, directory):
    return TenantStatusSynchronizer(store, directory)


@pytest.fixture
def ledger(store, synchronizer):
    return BillingLedger(store, synchronizer, max_retries=3)


@pytest.fixture
def batch_generator(directory, ledger):
    return MonthlyRentBatchGenerator(directory, ledger)


@pytest.fixture
def guard(store):
    return ExistenceGuard(store)
