import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import issue_token
from database import Stores, ensure_indexes, get_stores
from main import app


@pytest.fixture
def stores():
    stores = Stores(mongomock.MongoClient()["course-marketplace"])
    ensure_indexes(stores)
    return stores


@pytest.fixture
def client(stores):
    app.dependency_overrides[get_stores] = lambda: stores
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(stores):
    def _make(email, role="student", **fields):
        doc = {"email": email, "role": role, **fields}
        doc["_id"] = stores.users.insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def make_class(stores):
    def _make(name, instructor="teach@mail.com", status="approved", totalEnrolled=0, **fields):
        doc = {
            "name": name,
            "instructorEmail": instructor,
            "status": status,
            "totalEnrolled": totalEnrolled,
            "availableSeats": 10,
            "price": 20.0,
            **fields,
        }
        doc["_id"] = stores.classes.insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def bearer():
    def _headers(email, **claims):
        return {"Authorization": f"Bearer {issue_token({'email': email, **claims})}"}
    return _headers
