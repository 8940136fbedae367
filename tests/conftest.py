"""
Shared fixtures: an in-memory stand-in for the Motor database and a TestClient
wired to it through dependency overrides.
"""

import copy
import os
from types import SimpleNamespace

import pytest
from pymongo.errors import DuplicateKeyError

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "component_monitoring_test")

from fastapi.testclient import TestClient  # noqa: E402

from database.mongodb import get_database  # noqa: E402
from models.monitoring import (  # noqa: E402
    DerivedValue,
    MonitoredState,
    OverhaulPolicy,
    UsageUnit,
    ValueSource,
)
from server import app  # noqa: E402
from services.errors import NotFoundError  # noqa: E402
from services.monitoring_deps import get_resolver_config  # noqa: E402
from services.status_resolver import ResolverConfig  # noqa: E402


# ============================================================
# IN-MEMORY MONGO
# ============================================================

def _get_path(doc, path):
    value = doc
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def _set_path(doc, path, value):
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _matches(doc, query):
    for key, condition in query.items():
        value = _get_path(doc, key)
        if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
            for op, operand in condition.items():
                if op == "$in" and value not in operand:
                    return False
                if op == "$ne" and value == operand:
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:

    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction=1):
        self.docs.sort(
            key=lambda d: (_get_path(d, key) is None, _get_path(d, key)),
            reverse=direction < 0
        )
        return self

    async def to_list(self, length=None):
        docs = self.docs if length is None else self.docs[:length]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:

    def __init__(self):
        self.docs = []
        self.unique_keys = []
        self.indexes = {}
        self.fail_reads = None

    def _find(self, query):
        return [d for d in self.docs if _matches(d, query)]

    def _check_unique(self, doc):
        for other in self.docs:
            if other["_id"] == doc["_id"]:
                raise DuplicateKeyError(f"duplicate _id {doc['_id']}")
            for keys in self.unique_keys:
                if all(_get_path(other, k) == _get_path(doc, k) for k in keys):
                    raise DuplicateKeyError(f"duplicate key on {keys}")

    async def create_index(self, keys, name=None, unique=False):
        self.indexes[name] = keys
        if unique:
            self.unique_keys.append([k for k, _ in keys])
        return name

    async def find_one(self, query, projection=None):
        if self.fail_reads:
            raise self.fail_reads
        found = self._find(query)
        return copy.deepcopy(found[0]) if found else None

    def find(self, query=None):
        return FakeCursor(self._find(query or {}))

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        self._check_unique(doc)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def replace_one(self, query, doc):
        found = self._find(query)
        if not found:
            return SimpleNamespace(matched_count=0, modified_count=0)
        index = self.docs.index(found[0])
        self.docs[index] = copy.deepcopy(doc)
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def update_one(self, query, update):
        found = self._find(query)
        for path, value in update.get("$set", {}).items():
            for doc in found[:1]:
                _set_path(doc, path, copy.deepcopy(value))
        return SimpleNamespace(matched_count=len(found[:1]), modified_count=len(found[:1]))

    async def delete_one(self, query):
        found = self._find(query)
        if found:
            self.docs.remove(found[0])
        return SimpleNamespace(deleted_count=len(found[:1]))

    async def delete_many(self, query):
        found = self._find(query)
        for doc in found:
            self.docs.remove(doc)
        return SimpleNamespace(deleted_count=len(found))


class FakeDatabase:

    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection()
        return self.collections[name]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


class StaticUsageSource:
    """Usage source with fixed values, NotFoundError for unknown components"""

    def __init__(self, usage=None):
        self.usage = usage or {}
        self.calls = 0

    async def get_accumulated_usage(self, component_id, unit):
        self.calls += 1
        if component_id not in self.usage:
            raise NotFoundError(f"Component {component_id} not found")
        return self.usage[component_id]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def resolver_config():
    return ResolverConfig()


@pytest.fixture
def client(fake_db, resolver_config):
    """TestClient without lifespan, so no real MongoDB is contacted"""
    async def override_database():
        return fake_db

    app.dependency_overrides[get_database] = override_database
    app.dependency_overrides[get_resolver_config] = lambda: resolver_config
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_state():
    """Build a MonitoredState with overhaul fields given as keyword arguments"""
    def _make(
        current_value=0.0,
        limit_value=200.0,
        overhaul=None,
        semaforo=None,
        based_on_parent_usage=False,
        install_offset=0.0,
        source=ValueSource.COMPUTED,
        component_id="comp-1",
    ):
        policy = None
        if overhaul is not None:
            overhaul = dict(overhaul)
            overhaul.setdefault("enabled", True)
            if "next_overhaul_at" in overhaul and not isinstance(overhaul["next_overhaul_at"], DerivedValue):
                overhaul["next_overhaul_at"] = DerivedValue.manual(overhaul["next_overhaul_at"])
            policy = OverhaulPolicy(**overhaul)
        return MonitoredState(
            _id="state-1",
            component_id=component_id,
            control_id="ctrl-1",
            limit_value=limit_value,
            unit=UsageUnit.HOURS,
            based_on_parent_usage=based_on_parent_usage,
            install_offset=install_offset,
            current_value=DerivedValue(value=current_value, source=source),
            overhaul=policy,
            semaforo=semaforo,
        )
    return _make
