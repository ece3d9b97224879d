from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import create_access_token
from database import Base
from main import app, get_db


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def test_requests_without_valid_token_are_rejected(client) -> None:
    assert client.get("/api/transactions").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/transactions", headers=bad).status_code == 401
    expired = {
        "Authorization": f"Bearer {create_access_token(1, timedelta(seconds=-5))}"
    }
    assert client.get("/api/transactions", headers=expired).status_code == 401
    assert client.get("/api/health").status_code == 200


def test_transaction_crud_round_trip(client) -> None:
    headers = _auth(1)
    category = client.post(
        "/api/categories", json={"name": "Food"}, headers=headers
    ).json()

    created = client.post(
        "/api/transactions",
        json={
            "category_id": category["id"],
            "amount": "10.00",
            "description": "Groceries",
            "transaction_date": "2024-10-07T12:00:00Z",
        },
        headers=headers,
    )
    assert created.status_code == 201
    txn = created.json()
    assert txn["amount"] == "10.00"
    assert txn["amount_cents"] == 1000
    assert txn["transaction_date"] == "2024-10-07T12:00:00+00:00"

    updated = client.put(
        f"/api/transactions/{txn['id']}",
        json={
            "category_id": category["id"],
            "amount": "12.5",
            "description": "Groceries and bread",
            "transaction_date": "2024-10-08T09:30:00+02:00",
        },
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["amount"] == "12.50"
    assert updated.json()["transaction_date"] == "2024-10-08T07:30:00+00:00"

    listed = client.get(
        f"/api/transactions/category/{category['id']}", headers=headers
    ).json()
    assert [t["id"] for t in listed] == [txn["id"]]

    assert (
        client.delete(f"/api/transactions/{txn['id']}", headers=headers).status_code
        == 204
    )
    assert (
        client.get(f"/api/transactions/{txn['id']}", headers=headers).status_code
        == 404
    )


def test_naive_transaction_date_is_rejected(client) -> None:
    headers = _auth(1)
    category = client.post(
        "/api/categories", json={"name": "Food"}, headers=headers
    ).json()
    response = client.post(
        "/api/transactions",
        json={
            "category_id": category["id"],
            "amount": "1.00",
            "transaction_date": "2024-10-07T12:00:00",
        },
        headers=headers,
    )
    assert response.status_code == 422


def test_other_users_cannot_touch_transactions(client) -> None:
    owner = _auth(1)
    category = client.post(
        "/api/categories", json={"name": "Food"}, headers=owner
    ).json()
    txn = client.post(
        "/api/transactions",
        json={
            "category_id": category["id"],
            "amount": "3.00",
            "transaction_date": "2024-10-07T12:00:00Z",
        },
        headers=owner,
    ).json()

    intruder = _auth(2)
    assert client.get(f"/api/transactions/{txn['id']}", headers=intruder).status_code == 404
    assert (
        client.delete(f"/api/transactions/{txn['id']}", headers=intruder).status_code
        == 404
    )
    assert client.get("/api/transactions", headers=intruder).json() == []


def test_weekly_spending_always_returns_six_weeks(client) -> None:
    response = client.get("/api/transactions/weekly", headers=_auth(1))

    assert response.status_code == 200
    weeks = response.json()
    assert len(weeks) == 6
    assert all(w["total"] == "0.00" for w in weeks)
    assert weeks[0]["week_start"] < weeks[-1]["week_start"]


def test_budget_endpoints(client) -> None:
    headers = _auth(1)
    food = client.post(
        "/api/categories", json={"name": "Food"}, headers=headers
    ).json()

    missing = client.get(
        "/api/budgets/overall", params={"month": "03", "year": 2024}, headers=headers
    )
    assert missing.status_code == 404

    overall = client.post(
        "/api/budgets",
        json={"budget_month": "3", "budget_year": 2024, "limit_amount": "500.00"},
        headers=headers,
    )
    assert overall.status_code == 201
    assert overall.json()["budget_month"] == "03"
    assert overall.json()["category_id"] is None

    client.post(
        "/api/transactions",
        json={
            "category_id": food["id"],
            "amount": "120.25",
            "transaction_date": "2024-03-10T10:00:00Z",
        },
        headers=headers,
    )

    summary = client.get(
        "/api/budgets/overall", params={"month": 3, "year": 2024}, headers=headers
    ).json()
    assert summary["limit_amount"] == "500.00"
    assert summary["spent_amount"] == "120.25"
    assert summary["remaining_amount"] == "379.75"

    # no fallback from a category to the overall budget
    no_category_budget = client.get(
        f"/api/budgets/category/{food['id']}",
        params={"month": "03", "year": 2024},
        headers=headers,
    )
    assert no_category_budget.status_code == 404

    updated = client.put(
        f"/api/budgets/{overall.json()['id']}",
        json={"limit_amount": "600"},
        headers=headers,
    )
    assert updated.json()["limit_amount"] == "600.00"

    listed = client.get(
        "/api/budgets", params={"month": "03", "year": 2024}, headers=headers
    ).json()
    assert [b["id"] for b in listed] == [overall.json()["id"]]

    bad_month = client.get(
        "/api/budgets/overall", params={"month": "13", "year": 2024}, headers=headers
    )
    assert bad_month.status_code == 400


def test_category_in_use_cannot_be_deleted(client) -> None:
    headers = _auth(1)
    food = client.post(
        "/api/categories", json={"name": "Food"}, headers=headers
    ).json()
    client.post(
        "/api/transactions",
        json={
            "category_id": food["id"],
            "amount": "1.00",
            "transaction_date": "2024-10-07T12:00:00Z",
        },
        headers=headers,
    )

    response = client.delete(f"/api/categories/{food['id']}", headers=headers)
    assert response.status_code == 400
    duplicate = client.post("/api/categories", json={"name": "food"}, headers=headers)
    assert duplicate.status_code == 400
