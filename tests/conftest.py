import os
import tempfile

# must be in place before the app modules read their configuration
os.environ.pop("DATABASE_URL", None)
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="eshop-uploads-")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["API_URL"] = "/api/v1"

import mongomock
import pytest
from pymongo.errors import PyMongoError
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app
from security import create_access_token
from users import store_user

API = "/api/v1"


@pytest.fixture
def db():
    database = mongomock.MongoClient()["eshop-test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db):
    return store_user(db, {"name": "Admin", "email": "admin@example.com"}, "admin-pass", is_admin=True)


@pytest.fixture
def customer(db):
    return store_user(db, {"name": "Jane", "email": "jane@example.com"}, "jane-pass", is_admin=False)


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(str(admin_user['_id']), True)}"}


@pytest.fixture
def customer_headers(customer):
    return {"Authorization": f"Bearer {create_access_token(str(customer['_id']), False)}"}


@pytest.fixture
def make_category(db):
    def _make(name="Shoes"):
        doc = {"name": name, "icon": "icon", "color": "#000"}
        doc["_id"] = db["category"].insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def make_product(db, make_category):
    def _make(price=10.0, name="Product", category=None, is_featured=False):
        category = category or make_category()
        doc = {
            "name": name,
            "price": price,
            "category": category["_id"],
            "count_in_stock": 5,
            "is_featured": is_featured,
            "images": [],
        }
        doc["_id"] = db["product"].insert_one(doc).inserted_id
        return doc
    return _make


class FailingCollection:
    """Wraps a collection so the named methods raise PyMongoError.

    With no method names every call fails. `after` lets that many calls
    through before failing.
    """

    def __init__(self, collection, methods=(), after=0):
        self._collection = collection
        self._methods = set(methods)
        self._remaining = after

    def __getattr__(self, name):
        attr = getattr(self._collection, name)
        if self._methods and name not in self._methods:
            return attr

        def call(*args, **kwargs):
            if self._remaining > 0:
                self._remaining -= 1
                return attr(*args, **kwargs)
            raise PyMongoError("connection reset")
        return call


class FlakyDb:
    """`db` with some collections wrapped in FailingCollection; `"*"` wraps all."""

    def __init__(self, db, failing, after=0):
        self._db = db
        self._failing = failing
        self._wrapped = {}
        self._after = after

    def __getitem__(self, name):
        methods = self._failing.get(name, self._failing.get("*"))
        if methods is None:
            return self._db[name]
        if name not in self._wrapped:
            self._wrapped[name] = FailingCollection(self._db[name], methods, self._after)
        return self._wrapped[name]


@pytest.fixture
def flaky_db(db):
    """`flaky_db({"orderitem": ["insert_one"]})` -> db whose orderitem inserts fail."""
    def _make(failing, after=0):
        return FlakyDb(db, failing, after)
    return _make


@pytest.fixture
def use_db():
    def _use(database):
        app.dependency_overrides[get_db] = lambda: database
    return _use
