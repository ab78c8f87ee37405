from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from errors import StorageError
from main import app
from services import DashboardService


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def register(client, email: str = "ada@example.com", budget: float = 0) -> dict:
    resp = client.post(
        "/api/users",
        json={"name": "Ada", "email": email, "monthly_budget": budget},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"Authorization": f"Bearer {body['token']}"}


def test_dashboard_requires_identity_token(client) -> None:
    assert client.get("/api/dashboard/summary").status_code == 401
    resp = client.get(
        "/api/dashboard/summary", headers={"Authorization": "Bearer forged.token"}
    )
    assert resp.status_code == 401


def test_register_rejects_duplicate_email(client) -> None:
    register(client)
    resp = client.post(
        "/api/users", json={"name": "Ada", "email": "ADA@example.com"}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User already exists"


def test_me_returns_registered_user(client) -> None:
    headers = register(client, budget=250.5)

    resp = client.get("/api/users/me", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["email"] == "ada@example.com"
    assert body["monthlyBudget"] == 250.5
    assert body["currency"] == "USD"


def test_empty_dashboard_summary(client) -> None:
    headers = register(client)

    resp = client.get("/api/dashboard/summary", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["period"]["type"] == "current-month"
    assert body["summary"] == {
        "totalAmount": 0.0,
        "expenseCount": 0,
        "monthlyBudget": 0.0,
        "budgetUtilization": 0.0,
    }
    assert body["categoryBreakdown"] == {}
    assert body["topCategories"] == []
    assert body["recentExpenses"] == []


def test_expense_flow_feeds_dashboard(client) -> None:
    headers = register(client, budget=100)
    food = client.post(
        "/api/categories", json={"name": "Food", "icon": "🍔"}, headers=headers
    ).json()
    now = datetime.now(timezone.utc).replace(microsecond=0)

    for title, amount in (("Lunch", "10.00"), ("Coffee", "5.50")):
        resp = client.post(
            "/api/expenses",
            json={
                "title": title,
                "amount": amount,
                "category_id": food["id"],
                "date": now.isoformat(),
                "payment_method": "Credit Card",
                "tags": ["daily"],
            },
            headers=headers,
        )
        assert resp.status_code == 201, resp.text

    summary = client.get(
        "/api/dashboard/summary", params={"period": "current-week"}, headers=headers
    ).json()
    assert summary["summary"]["totalAmount"] == 15.5
    assert summary["summary"]["budgetUtilization"] == 15.5
    assert summary["categoryBreakdown"] == {"Food": 15.5}
    assert summary["topCategories"] == [{"name": "Food", "amount": 15.5}]
    assert summary["recentExpenses"][0]["category"]["icon"] == "🍔"
    assert summary["recentExpenses"][0]["tags"] == ["daily"]

    charts = client.get("/api/dashboard/charts", headers=headers).json()
    assert charts["dailyTrend"] == [{"date": now.date().isoformat(), "amount": 15.5}]
    assert charts["paymentMethodBreakdown"] == [
        {"method": "Credit Card", "amount": 15.5}
    ]

    insights = client.get("/api/dashboard/insights", headers=headers).json()
    assert insights["currentMonthTotal"] == 15.5
    assert insights["lastMonthTotal"] == 0.0
    assert insights["percentageChange"] == 0.0
    assert insights["insights"][-1]["title"] == "Highest Spending Day"
    assert "$15.50" in insights["insights"][-1]["message"]


def test_owners_cannot_see_each_other(client) -> None:
    ada = register(client, "ada@example.com")
    bob = register(client, "bob@example.com")
    food = client.post("/api/categories", json={"name": "Food"}, headers=ada).json()
    client.post(
        "/api/expenses",
        json={"title": "Lunch", "amount": 12, "category_id": food["id"]},
        headers=ada,
    )

    resp = client.post(
        "/api/expenses",
        json={"title": "Sneaky", "amount": 1, "category_id": food["id"]},
        headers=bob,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Category not found"

    summary = client.get("/api/dashboard/summary", headers=bob).json()
    assert summary["summary"]["expenseCount"] == 0
    assert client.get("/api/expenses", headers=bob).json()["expenses"] == []


def test_category_import_defaults_and_soft_delete(client) -> None:
    headers = register(client)

    created = client.post("/api/categories/import-defaults", headers=headers)
    assert created.status_code == 201
    assert len(created.json()) == 10

    again = client.post("/api/categories/import-defaults", headers=headers)
    assert again.status_code == 400

    travel = next(c for c in created.json() if c["name"] == "Travel")
    assert client.delete(f"/api/categories/{travel['id']}", headers=headers).status_code == 200
    names = [c["name"] for c in client.get("/api/categories", headers=headers).json()]
    assert "Travel" not in names
    assert len(names) == 9


def test_delete_missing_expense_is_404(client) -> None:
    headers = register(client)

    resp = client.delete("/api/expenses/999", headers=headers)

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Expense not found"


def test_list_expenses_by_period(client) -> None:
    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()
    now = datetime.now(timezone.utc)
    old = now - timedelta(days=800)
    for title, when in (("Now", now), ("Old", old)):
        client.post(
            "/api/expenses",
            json={
                "title": title,
                "amount": "3.00",
                "category_id": food["id"],
                "date": when.isoformat(),
            },
            headers=headers,
        )

    everything = client.get("/api/expenses", headers=headers).json()["expenses"]
    this_year = client.get(
        "/api/expenses", params={"period": "current-year"}, headers=headers
    ).json()["expenses"]

    assert [e["title"] for e in everything] == ["Now", "Old"]
    assert [e["title"] for e in this_year] == ["Now"]


def test_storage_failure_is_a_generic_server_error(client, monkeypatch) -> None:
    headers = register(client)

    def broken(self, owner_id, period=None):
        raise StorageError("connection reset")

    monkeypatch.setattr(DashboardService, "summary", broken)

    resp = client.get("/api/dashboard/summary", headers=headers)

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Server error"}


def test_oversized_amounts_are_rejected_as_validation_errors(client) -> None:
    resp = client.post(
        "/api/users",
        json={"name": "Ada", "email": "ada@example.com", "monthly_budget": "1e30"},
    )
    assert resp.status_code == 422

    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()
    for amount in ("1e30", "1000000000"):
        resp = client.post(
            "/api/expenses",
            json={"title": "Yacht", "amount": amount, "category_id": food["id"]},
            headers=headers,
        )
        assert resp.status_code == 422

    resp = client.post(
        "/api/categories", json={"name": "Big", "budget": "1e30"}, headers=headers
    )
    assert resp.status_code == 422
    resp = client.get("/api/expenses", params={"max_amount": "1e30"}, headers=headers)
    assert resp.status_code == 422


def test_profile_budget_update_feeds_budget_utilization(client) -> None:
    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()
    client.post(
        "/api/expenses",
        json={"title": "Groceries", "amount": "95", "category_id": food["id"]},
        headers=headers,
    )

    resp = client.put(
        "/api/users/me",
        json={"monthly_budget": "100", "currency": "eur"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["monthlyBudget"] == 100.0
    assert resp.json()["currency"] == "EUR"

    summary = client.get("/api/dashboard/summary", headers=headers).json()
    assert summary["summary"]["budgetUtilization"] == 95.0
    insights = client.get("/api/dashboard/insights", headers=headers).json()
    assert insights["insights"][0]["title"] == "Budget Alert"


def test_profile_update_rejects_taken_email_and_unknown_currency(client) -> None:
    register(client, "bob@example.com")
    headers = register(client, "ada@example.com")

    taken = client.put("/api/users/me", json={"email": "bob@example.com"}, headers=headers)
    assert taken.status_code == 400
    assert taken.json()["detail"] == "Email already in use"

    bad = client.put("/api/users/me", json={"currency": "INR"}, headers=headers)
    assert bad.status_code == 422


def test_category_read_update_and_defaults_list(client) -> None:
    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()

    resp = client.put(
        f"/api/categories/{food['id']}",
        json={"name": "Dining", "color": "#EF4444", "budget": 200},
        headers=headers,
    )
    assert resp.status_code == 200
    body = client.get(f"/api/categories/{food['id']}", headers=headers).json()
    assert (body["name"], body["color"], body["budget"]) == ("Dining", "#EF4444", 200.0)

    assert client.get("/api/categories/999", headers=headers).status_code == 404
    assert (
        client.put("/api/categories/999", json={"name": "X"}, headers=headers).status_code
        == 404
    )

    defaults = client.get("/api/categories/default/list", headers=headers).json()
    assert len(defaults) == 10
    assert defaults[0] == {
        "name": "Food & Dining",
        "icon": "🍽️",
        "color": "#EF4444",
        "description": "Restaurants, groceries, and dining out",
    }


def test_expense_read_and_update(client) -> None:
    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()
    rent = client.post("/api/categories", json={"name": "Rent"}, headers=headers).json()
    created = client.post(
        "/api/expenses",
        json={"title": "Lunch", "amount": "12.00", "category_id": food["id"]},
        headers=headers,
    ).json()

    resp = client.put(
        f"/api/expenses/{created['id']}",
        json={"amount": "20.25", "category_id": rent["id"], "is_recurring": True},
        headers=headers,
    )
    assert resp.status_code == 200

    body = client.get(f"/api/expenses/{created['id']}", headers=headers).json()
    assert body["title"] == "Lunch"
    assert body["amount"] == 20.25
    assert body["category"]["name"] == "Rent"
    assert body["isRecurring"] is True

    other = register(client, "bob@example.com")
    assert client.get(f"/api/expenses/{created['id']}", headers=other).status_code == 404
    resp = client.put(
        f"/api/expenses/{created['id']}", json={"title": "Mine"}, headers=other
    )
    assert resp.status_code == 404


def test_expense_list_pagination_and_filters(client) -> None:
    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()
    for i, method in enumerate(["Cash", "Cash", "Credit Card", "Cash", "Cash"], start=1):
        client.post(
            "/api/expenses",
            json={
                "title": f"Item {i}",
                "amount": i,
                "category_id": food["id"],
                "date": f"2025-01-0{i}T12:00:00+00:00",
                "payment_method": method,
            },
            headers=headers,
        )

    page = client.get(
        "/api/expenses", params={"page": 2, "limit": 2}, headers=headers
    ).json()
    assert [e["title"] for e in page["expenses"]] == ["Item 3", "Item 2"]
    assert page["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalItems": 5,
        "itemsPerPage": 2,
    }

    cash = client.get(
        "/api/expenses",
        params={
            "payment_method": "Cash",
            "min_amount": 2,
            "sort_by": "amount",
            "sort_order": "asc",
        },
        headers=headers,
    ).json()
    assert [e["amount"] for e in cash["expenses"]] == [2.0, 4.0, 5.0]

    ranged = client.get(
        "/api/expenses",
        params={"start_date": "2025-01-02T00:00:00", "end_date": "2025-01-03T23:59:59"},
        headers=headers,
    ).json()
    assert [e["title"] for e in ranged["expenses"]] == ["Item 3", "Item 2"]

    assert (
        client.get("/api/expenses", params={"limit": 101}, headers=headers).status_code
        == 422
    )
    assert (
        client.get("/api/expenses", params={"sort_by": "color"}, headers=headers).status_code
        == 422
    )


def test_current_month_expense_summary(client) -> None:
    headers = register(client)
    food = client.post("/api/categories", json={"name": "Food"}, headers=headers).json()
    now = datetime.now(timezone.utc).replace(microsecond=0)
    client.post(
        "/api/expenses",
        json={
            "title": "Lunch",
            "amount": "10.50",
            "category_id": food["id"],
            "date": now.isoformat(),
        },
        headers=headers,
    )

    body = client.get("/api/expenses/summary/current-month", headers=headers).json()

    assert body["totalAmount"] == 10.5
    assert body["expenseCount"] == 1
    assert body["categoryTotals"] == {"Food": 10.5}
    assert body["period"]["type"] == "current-month"
