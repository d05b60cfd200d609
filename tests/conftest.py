import os
import tempfile

# Must be set before the application module is imported.
_tmp_dir = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir}/test.db"
os.environ["ADMIN_USER"] = "admin"
os.environ["ADMIN_PASSWORD"] = "letmein"
os.environ["LOG_LEVEL"] = "ERROR"
os.environ["MAIL_ENABLED"] = "False"

import pytest
from fastapi.testclient import TestClient

from storefront.db import drop_db, init_db
from storefront.main import app


@pytest.fixture(autouse=True)
def fresh_state():
    drop_db()
    init_db()
    app.state.rate_limiter.reset()
    app.state.security_log.clear()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def admin_client():
    c = TestClient(app)
    res = c.post("/admin/login", json={"username": "admin", "password": "letmein"})
    assert res.status_code == 200
    return c


@pytest.fixture
def design_payload():
    return {
        "shirtColor": "#000000",
        "size": "Adult Medium",
        "printType": "DTF (Direct to Film)",
        "quantity": 3,
        "printAreas": [
            {"id": "front", "name": "Only Front Side", "price": 5.00, "selected": True},
            {"id": "right-sleeve", "name": "Right Sleeve", "price": 2.50, "selected": True},
            {"id": "back", "name": "Only Back Side", "price": 20.00, "selected": False},
        ],
        "turnaroundTime": {"label": "Same Day", "price": 4.00},
        "designProof": "Yes, send design proof before printing",
        "proofContactMethod": "email",
        "contactDetails": "me@example.com",
        "textElements": [{"id": "t1", "text": "Hello", "color": "#fff", "fontSize": 24, "area": "front"}],
        "imageElements": [],
        "areaInstructions": [{"areaId": "front", "instructions": "center it"}],
    }


@pytest.fixture
def checkout_payload():
    return {
        "productType": "color_copies",
        "productName": "Color Copies",
        "quantity": 10,
        "printAreas": [{"id": "front", "name": "8.5x11 - Single side", "price": 0.49, "selected": True}],
        "turnaroundTime": {"label": "Normal", "price": 0},
        "colorCopiesData": {"printType": "8.5x11-single"},
        "customerDetails": {
            "firstName": "Sam",
            "lastName": "Lee",
            "email": "sam@example.com",
            "phone": "555-0100",
            "address": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "zipCode": "62701",
            "country": "US",
        },
    }
