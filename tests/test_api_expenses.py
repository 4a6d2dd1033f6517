import uuid

from app.core.jwt import create_access_token
from app.models.budget import Budget
from app.services import reconcile


def _post(client, headers, amount, category="Food", day="2025-06-10", description="lunch"):
    payload = {"amount": amount, "description": description, "expense_date": day}
    if category is not None:
        payload["category"] = category
    return client.post("/expenses", json=payload, headers=headers)


def _budget(client, headers, name, start, end):
    resp = client.post(
        "/budgets",
        json={
            "name": name,
            "type": "monthly",
            "start_date": start,
            "end_date": end,
            "category_budgets": [{"category": "Food", "limit": 200}],
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return uuid.UUID(resp.json()["id"])


def test_create_and_get_expense(client, headers, user):
    resp = _post(client, headers, 12.5, description="  coffee  ")
    assert resp.status_code == 201
    body = resp.json()
    assert body["description"] == "coffee"
    assert body["user_id"] == str(user.id)
    assert body["ai_suggested"] is False
    assert body["recurring_template_id"] is None

    fetched = client.get(f"/expenses/{body['id']}", headers=headers).json()
    assert fetched["amount"] == 12.5


def test_missing_category_is_suggested(client, headers):
    resp = _post(client, headers, 25, category=None, description="Uber to airport")
    assert resp.status_code == 201
    body = resp.json()
    assert body["category"] == "Transportation"
    assert body["ai_suggested"] is True


def test_blank_description_is_rejected(client, headers):
    resp = _post(client, headers, 5, description="   ")
    assert resp.status_code == 400
    assert resp.json()["errors"] == ["Description cannot be empty"]


def test_list_filters_sorts_and_paginates(client, headers):
    _post(client, headers, 10, day="2025-06-01")
    _post(client, headers, 30, day="2025-06-03")
    _post(client, headers, 20, day="2025-06-02", category="Travel")

    body = client.get("/expenses", params={"limit": 2}, headers=headers).json()
    assert [e["expense_date"] for e in body["expenses"]] == ["2025-06-03", "2025-06-02"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert body["summary"] == {"total_expenses": 3, "total_amount": 60.0}

    page2 = client.get("/expenses", params={"limit": 2, "page": 2}, headers=headers).json()
    assert [e["amount"] for e in page2["expenses"]] == [10]

    by_amount = client.get("/expenses", params={"sort_by": "amount", "order": "asc"}, headers=headers).json()
    assert [e["amount"] for e in by_amount["expenses"]] == [10, 20, 30]

    food = client.get(
        "/expenses", params={"category": "Food", "start_date": "2025-06-02"}, headers=headers
    ).json()
    assert [e["amount"] for e in food["expenses"]] == [30]


def test_list_only_shows_own_expenses(client, headers, other_user):
    _post(client, headers, 10)
    intruder = {"Authorization": f"Bearer {create_access_token(str(other_user.id))}"}
    body = client.get("/expenses", headers=intruder).json()
    assert body["expenses"] == []
    assert body["pagination"]["total_pages"] == 0


def test_stats_summary(client, headers):
    _post(client, headers, 30)
    _post(client, headers, 10)
    _post(client, headers, 60, category="Rent")

    body = client.get("/expenses/stats/summary", headers=headers).json()
    assert body["total_expenses"] == 3
    assert body["total_amount"] == 100
    assert body["average_expense"] == 33.33
    assert body["category_breakdown"] == [
        {"category": "Rent", "count": 1, "total": 60, "percentage": 60},
        {"category": "Food", "count": 2, "total": 40, "percentage": 40},
    ]


def test_patch_reconciles_old_and_new_period(client, session, headers):
    may = _budget(client, headers, "May", "2025-05-01", "2025-05-31")
    june = _budget(client, headers, "June", "2025-06-01", "2025-06-30")
    expense = _post(client, headers, 50, day="2025-06-10").json()

    resp = client.patch(f"/expenses/{expense['id']}", json={"expense_date": "2025-05-20"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["expense_date"] == "2025-05-20"

    session.expire_all()
    assert session.get(Budget, june).total_spent == 0
    assert session.get(Budget, may).total_spent == 50


def test_patch_without_fields_is_rejected(client, headers):
    expense = _post(client, headers, 5).json()
    resp = client.patch(f"/expenses/{expense['id']}", json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No fields to update"


def test_delete_expense(client, headers):
    expense = _post(client, headers, 5).json()
    assert client.delete(f"/expenses/{expense['id']}", headers=headers).status_code == 204
    assert client.get(f"/expenses/{expense['id']}", headers=headers).status_code == 404


def test_other_users_expense_is_forbidden(client, headers, other_user):
    expense = _post(client, headers, 5).json()
    intruder = {"Authorization": f"Bearer {create_access_token(str(other_user.id))}"}
    resp = client.patch(f"/expenses/{expense['id']}", json={"amount": 1}, headers=intruder)
    assert resp.status_code == 403


def test_budget_refresh_failure_does_not_fail_expense(client, session, headers, monkeypatch):
    june = _budget(client, headers, "June", "2025-06-01", "2025-06-30")

    def boom(*args, **kwargs):
        raise RuntimeError("progress exploded")

    monkeypatch.setattr(reconcile, "compute_progress", boom)
    resp = _post(client, headers, 40)

    assert resp.status_code == 201
    assert client.get(f"/expenses/{resp.json()['id']}", headers=headers).status_code == 200
    session.expire_all()
    assert session.get(Budget, june).total_spent == 0
