"""
Test configuration and fixtures
"""

import copy
import re
import pytest
from datetime import date, timedelta
from unittest.mock import MagicMock

from httpx import AsyncClient, ASGITransport

from app.database import get_database
from app.models.appointment import Appointment, ServiceSnapshot
from app.models.business import Business
from app.models.business_category import BusinessCategory
from app.models.pet import MedicalInfo, Pet, Species, Vaccination
from app.models.service import Service, ServiceDuration, ServicePricing
from app.models.user import User, UserRole
from app.utils.permissions import default_permissions
from app.utils.security import create_access_token, get_password_hash

TEST_PASSWORD = "Secret123!"


# ============== Mock database ==============

def _resolve(value, parts: list[str]) -> list:
    """Every value found at a dotted path, walking through arrays"""
    if not parts:
        return [value]
    if isinstance(value, list):
        if parts[0].isdigit():
            index = int(parts[0])
            return _resolve(value[index], parts[1:]) if index < len(value) else []
        found = []
        for item in value:
            found.extend(_resolve(item, parts))
        return found
    if isinstance(value, dict) and parts[0] in value:
        return _resolve(value[parts[0]], parts[1:])
    return []


def _equals(found: list, expected) -> bool:
    if not found:
        return expected is None
    for value in found:
        if value == expected:
            return True
        if isinstance(value, list) and expected in value:
            return True
    return False


def _compare(found: list, op: str, expected) -> bool:
    for value in found:
        candidates = value if isinstance(value, list) else [value]
        for v in candidates:
            if v is None:
                continue
            try:
                if op == "$gt" and v > expected:
                    return True
                if op == "$gte" and v >= expected:
                    return True
                if op == "$lt" and v < expected:
                    return True
                if op == "$lte" and v <= expected:
                    return True
            except TypeError:
                continue
    return False


def _match_condition(found: list, condition) -> bool:
    if not (isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition)):
        return _equals(found, condition)

    for op, expected in condition.items():
        if op == "$eq" and not _equals(found, expected):
            return False
        if op == "$ne" and _equals(found, expected):
            return False
        if op == "$in" and not any(_equals(found, e) for e in expected):
            return False
        if op == "$nin" and any(_equals(found, e) for e in expected):
            return False
        if op in ("$gt", "$gte", "$lt", "$lte") and not _compare(found, op, expected):
            return False
        if op == "$exists" and bool(found) != bool(expected):
            return False
        if op == "$regex":
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not any(isinstance(v, str) and re.search(expected, v, flags) for v in found):
                return False
    return True


def match(doc: dict, query: dict) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(match(doc, q) for q in condition):
                return False
        elif key == "$and":
            if not all(match(doc, q) for q in condition):
                return False
        elif not _match_condition(_resolve(doc, key.split(".")), condition):
            return False
    return True


def _parent(doc: dict, path: str) -> tuple[dict, str]:
    parts = path.split(".")
    current = doc
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    return current, parts[-1]


def apply_update(doc: dict, update: dict) -> None:
    for op, fields in update.items():
        for path, value in fields.items():
            parent, key = _parent(doc, path)
            if op == "$set":
                parent[key] = copy.deepcopy(value)
            elif op == "$unset":
                parent.pop(key, None)
            elif op == "$inc":
                parent[key] = (parent.get(key) or 0) + value
            elif op == "$push":
                items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
                parent.setdefault(key, []).extend(copy.deepcopy(items))
            elif op == "$addToSet":
                items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
                target = parent.setdefault(key, [])
                target.extend(i for i in items if i not in target)
            elif op == "$pull":
                if isinstance(value, dict):
                    parent[key] = [i for i in parent.get(key, []) if not (isinstance(i, dict) and match(i, value))]
                else:
                    parent[key] = [i for i in parent.get(key, []) if i != value]


def _sort_key(path: str):
    def key(doc: dict):
        found = _resolve(doc, path.split("."))
        value = found[0] if found else None
        return (value is not None, value if value is not None else 0)
    return key


def sort_docs(docs: list[dict], order) -> list[dict]:
    if isinstance(order, str):
        order = [(order, 1)]
    for path, direction in reversed(order):
        docs = sorted(docs, key=_sort_key(path), reverse=direction == -1)
    return docs


class MockCursor:
    """Mock Motor cursor"""

    def __init__(self, data: list):
        self._data = data
        self._skip = 0
        self._limit = None

    def sort(self, key_or_list, direction: int = 1):
        order = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        self._data = sort_docs(self._data, order)
        return self

    def skip(self, n: int):
        self._skip = n
        return self

    def limit(self, n: int):
        self._limit = n or None
        return self

    async def to_list(self, length=None):
        data = self._data[self._skip:]
        if self._limit:
            data = data[:self._limit]
        if length:
            data = data[:length]
        return [copy.deepcopy(d) for d in data]


class MockCollection:
    """Mock Motor collection backed by a list of dicts"""

    def __init__(self):
        self.docs: list[dict] = []
        self.counter = 0

    def _matching(self, query: dict = None) -> list[dict]:
        return [d for d in self.docs if match(d, query or {})]

    async def find_one(self, query: dict = None, projection=None, sort=None):
        docs = self._matching(query)
        if sort:
            docs = sort_docs(docs, sort)
        return copy.deepcopy(docs[0]) if docs else None

    def find(self, query: dict = None, projection=None):
        return MockCursor(self._matching(query))

    async def insert_one(self, doc: dict):
        self.counter += 1
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", f"mock_id_{self.counter}")
        self.docs.append(stored)
        return MagicMock(inserted_id=stored["_id"])

    async def insert_many(self, docs: list[dict]):
        ids = [(await self.insert_one(d)).inserted_id for d in docs]
        return MagicMock(inserted_ids=ids)

    def _upsert(self, query: dict, update: dict) -> dict:
        doc = {k: copy.deepcopy(v) for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        self.counter += 1
        doc.setdefault("_id", f"mock_id_{self.counter}")
        apply_update(doc, {k: v for k, v in update.items() if k != "$setOnInsert"})
        apply_update(doc, {"$set": update.get("$setOnInsert", {})})
        self.docs.append(doc)
        return doc

    async def update_one(self, query: dict, update: dict, upsert: bool = False):
        docs = self._matching(query)
        if docs:
            apply_update(docs[0], update)
            return MagicMock(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = self._upsert(query, update)
            return MagicMock(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return MagicMock(matched_count=0, modified_count=0, upserted_id=None)

    async def update_many(self, query: dict, update: dict):
        docs = self._matching(query)
        for doc in docs:
            apply_update(doc, update)
        return MagicMock(matched_count=len(docs), modified_count=len(docs))

    async def find_one_and_update(self, query: dict, update: dict, upsert: bool = False,
                                  return_document: bool = False, sort=None, projection=None):
        docs = self._matching(query)
        if sort:
            docs = sort_docs(docs, sort)
        if not docs:
            if not upsert:
                return None
            doc = self._upsert(query, update)
            return copy.deepcopy(doc) if return_document else None

        before = copy.deepcopy(docs[0])
        apply_update(docs[0], update)
        return copy.deepcopy(docs[0]) if return_document else before

    async def delete_one(self, query: dict):
        docs = self._matching(query)
        if docs:
            self.docs.remove(docs[0])
        return MagicMock(deleted_count=len(docs[:1]))

    async def delete_many(self, query: dict):
        docs = self._matching(query)
        for doc in docs:
            self.docs.remove(doc)
        return MagicMock(deleted_count=len(docs))

    async def count_documents(self, query: dict = None):
        return len(self._matching(query))

    async def create_index(self, *args, **kwargs):
        return "mock_index"


class MockDatabase:
    """Mock Motor database; collections appear on first access"""

    def __init__(self):
        self._collections = {}

    def __getattr__(self, name: str):
        if name.startswith("_"):
            return super().__getattribute__(name)
        if name not in self._collections:
            self._collections[name] = MockCollection()
        return self._collections[name]

    def __getitem__(self, name: str):
        return getattr(self, name)


# ============== Data fixtures ==============

def next_weekday(days_ahead: int = 2) -> date:
    """A Monday-Friday date a few days out, inside every booking window"""
    day = date.today() + timedelta(days=days_ahead)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def make_user(role: UserRole, email: str, business_ids=None, **extra) -> User:
    return User(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        role=role,
        first_name=extra.pop("first_name", "Test"),
        last_name=extra.pop("last_name", role.value.title()),
        business_ids=business_ids or [],
        permissions=default_permissions(role),
        **extra
    )


def auth_headers_for(user: User) -> dict:
    token = create_access_token(user.user_id, user.role.value, user.business_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def mock_db():
    """Create a mock database"""
    return MockDatabase()


@pytest.fixture
def sample_business():
    return Business(
        business_id="bus_test123",
        owner_id="usr_admin123",
        name="Happy Paws Grooming",
        email="hello@happypaws.example.com",
    )


@pytest.fixture
def admin_user():
    return make_user(UserRole.BUSINESS_ADMIN, "admin@happypaws.example.com", ["bus_test123"], user_id="usr_admin123")


@pytest.fixture
def staff_user():
    return make_user(UserRole.STAFF, "groomer@happypaws.example.com", ["bus_test123"], user_id="usr_staff123")


@pytest.fixture
def client_user():
    return make_user(
        UserRole.CLIENT, "owner@example.com", ["bus_test123"],
        user_id="usr_client123", first_name="Meera", last_name="Iyer", pet_ids=["pet_test123"]
    )


@pytest.fixture
def sample_pet():
    return Pet(
        pet_id="pet_test123",
        owner_id="usr_client123",
        business_ids=["bus_test123"],
        name="Bruno",
        species=Species.DOG,
        breed="Beagle",
        date_of_birth=date.today() - timedelta(days=3 * 365),
        medical=MedicalInfo(vaccinations=[
            Vaccination(
                name="Rabies",
                administered_on=date.today() - timedelta(days=100),
                expires_at=date.today() + timedelta(days=265)
            )
        ])
    )


@pytest.fixture
def sample_service():
    return Service(
        service_id="svc_test123",
        business_id="bus_test123",
        name="Full Groom",
        pricing=ServicePricing(base_price=1500),
        duration=ServiceDuration(estimated_minutes=60, buffer_minutes=15),
    )


@pytest.fixture
def booking_date():
    return next_weekday(3)


@pytest.fixture
async def seeded_db(mock_db, sample_business, admin_user, staff_user, client_user, sample_pet, sample_service):
    """One business with an admin, a groomer, a client, a dog and a service"""
    sample_business.staff_ids = [staff_user.user_id]
    await mock_db.businesses.insert_one(sample_business.to_mongo())
    for user in (admin_user, staff_user, client_user):
        await mock_db.users.insert_one(user.to_mongo())
    await mock_db.pets.insert_one(sample_pet.to_mongo())
    await mock_db.services.insert_one(sample_service.to_mongo())
    return mock_db


@pytest.fixture
async def api_client(seeded_db):
    """HTTP client against the app with the database swapped for the mock"""
    from server import app

    app.dependency_overrides[get_database] = lambda: seeded_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


@pytest.fixture
def staff_headers(staff_user):
    return auth_headers_for(staff_user)


@pytest.fixture
def client_headers(client_user):
    return auth_headers_for(client_user)


@pytest.fixture
async def active_appointment(seeded_db, booking_date):
    """A scheduled groom for Bruno with the groomer, a few days out"""
    appointment = Appointment(
        business_id="bus_test123",
        client_id="usr_client123",
        pet_id="pet_test123",
        staff_id="usr_staff123",
        service=ServiceSnapshot(service_id="svc_test123", name="Full Groom", duration_minutes=60, price=1500),
        scheduled_date=booking_date,
        start_time="10:00",
        end_time="11:15",
        price=1500,
    )
    await seeded_db.appointments.insert_one(appointment.to_mongo())
    return appointment


@pytest.fixture
async def super_admin_headers(seeded_db):
    user = make_user(UserRole.SUPER_ADMIN, "root@petsync.example.com", user_id="usr_root123")
    await seeded_db.users.insert_one(user.to_mongo())
    return auth_headers_for(user)


@pytest.fixture
async def grooming_category(seeded_db):
    """Active category with the sample business filed under it"""
    category = BusinessCategory(
        category_id="cat_groom123", name="Grooming Salon", slug="grooming-salon",
        display_order=1, created_by="usr_root123"
    )
    await seeded_db.business_categories.insert_one(category.to_mongo())
    await seeded_db.businesses.update_one(
        {"business_id": "bus_test123"}, {"$set": {"category_id": category.category_id}}
    )
    return category
