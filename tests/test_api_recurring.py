import uuid

from app.core.jwt import create_access_token
from app.models.budget import Budget

CRON = {"X-Cron-Secret": "cron-test"}


def _create(client, headers, **overrides):
    payload = {
        "template_name": "Netflix",
        "amount": 15.99,
        "category": "Food",
        "description": "Streaming",
        "frequency": "monthly",
        "start_date": "2025-06-01",
    }
    payload.update(overrides)
    resp = client.post("/recurring-expenses", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_sets_first_occurrence_one_step_after_start(client, headers):
    body = _create(client, headers, start_date="2025-01-31")
    assert body["next_occurrence"] == "2025-03-03"
    assert body["last_generated"] is None
    assert body["is_active"] is True


def test_create_rejects_end_before_start(client, headers):
    resp = client.post(
        "/recurring-expenses",
        json={
            "template_name": "Gym",
            "amount": 30,
            "category": "Health",
            "description": "Membership",
            "frequency": "monthly",
            "start_date": "2025-06-01",
            "end_date": "2025-05-01",
        },
        headers=headers,
    )
    assert resp.status_code == 400


def test_unknown_frequency_is_rejected(client, headers):
    resp = client.post(
        "/recurring-expenses",
        json={
            "template_name": "Gym",
            "amount": 30,
            "category": "Health",
            "description": "Membership",
            "frequency": "fortnightly",
            "start_date": "2025-06-01",
        },
        headers=headers,
    )
    assert resp.status_code == 422


def test_list_includes_summary(client, headers):
    _create(client, headers)
    _create(client, headers, template_name="Paper", amount=5, frequency="weekly", is_active=False)

    body = client.get("/recurring-expenses", headers=headers).json()
    assert len(body["recurring_expenses"]) == 2
    assert body["summary"] == {"total": 2, "active": 1, "inactive": 1, "estimated_monthly_total": 15.99}


def test_generate_materializes_and_advances(client, headers):
    template = _create(client, headers)

    resp = client.post(f"/recurring-expenses/{template['id']}/generate", headers=headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["expense"]["expense_date"] == "2025-07-01"
    assert body["expense"]["amount"] == 15.99
    assert body["expense"]["recurring_template_id"] == template["id"]
    assert body["recurring_expense"]["last_generated"] == "2025-07-01"
    assert body["next_occurrence"] == "2025-08-01"


def test_generate_inactive_template_is_rejected(client, headers):
    template = _create(client, headers, is_active=False)
    resp = client.post(f"/recurring-expenses/{template['id']}/generate", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Recurring expense is inactive"


def test_patch_frequency_reanchors_on_last_generated(client, headers):
    template = _create(client, headers)
    client.post(f"/recurring-expenses/{template['id']}/generate", headers=headers)

    resp = client.patch(
        f"/recurring-expenses/{template['id']}", json={"frequency": "weekly"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["next_occurrence"] == "2025-07-08"


def test_patch_can_clear_end_date(client, headers):
    template = _create(client, headers, end_date="2025-12-31")
    resp = client.patch(f"/recurring-expenses/{template['id']}", json={"end_date": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["end_date"] is None
    assert resp.json()["next_occurrence"] == template["next_occurrence"]


def test_upcoming_window(client, headers):
    soon = _create(client, headers, start_date="2025-05-20")
    _create(client, headers, template_name="Later", start_date="2025-07-20")

    body = client.get("/recurring-expenses/upcoming", params={"days": 30}, headers=headers).json()
    assert body["count"] == 1
    assert body["upcoming"][0]["id"] == soon["id"]
    assert body["upcoming"][0]["days_until"] == 5
    assert (body["start"], body["end"]) == ("2025-06-15", "2025-07-15")


def test_sweep_requires_cron_secret(client):
    assert client.post("/recurring-expenses/sweep").status_code == 401
    resp = client.post("/recurring-expenses/sweep", headers={"X-Cron-Secret": "nope"})
    assert resp.status_code == 401


def test_sweep_generates_due_templates_and_refreshes_budgets(client, session, headers):
    budget = client.post(
        "/budgets",
        json={
            "name": "June",
            "type": "monthly",
            "start_date": "2025-06-01",
            "end_date": "2025-06-30",
            "category_budgets": [{"category": "Food", "limit": 100}],
        },
        headers=headers,
    ).json()
    due = _create(client, headers, start_date="2025-05-15")
    _create(client, headers, template_name="Manual", start_date="2025-05-01", auto_generate=False)

    resp = client.post("/recurring-expenses/sweep", headers=CRON)
    assert resp.status_code == 200
    assert resp.json() == {"run_date": "2025-06-15", "generated": 1, "deactivated": 0, "skipped": 0}

    expenses = client.get("/expenses", headers=headers).json()["expenses"]
    assert [(e["recurring_template_id"], e["expense_date"]) for e in expenses] == [(due["id"], "2025-06-15")]
    refreshed = client.get(f"/recurring-expenses/{due['id']}", headers=headers).json()
    assert refreshed["next_occurrence"] == "2025-07-15"

    session.expire_all()
    assert session.get(Budget, uuid.UUID(budget["id"])).total_spent == 15.99

    again = client.post("/recurring-expenses/sweep", headers=CRON).json()
    assert again["generated"] == 0


def test_other_users_template_is_forbidden(client, headers, other_user):
    template = _create(client, headers)
    intruder = {"Authorization": f"Bearer {create_access_token(str(other_user.id))}"}
    assert client.post(f"/recurring-expenses/{template['id']}/generate", headers=intruder).status_code == 403
    assert client.delete(f"/recurring-expenses/{template['id']}", headers=intruder).status_code == 403


def test_delete_template_keeps_generated_expenses(client, headers):
    template = _create(client, headers)
    client.post(f"/recurring-expenses/{template['id']}/generate", headers=headers)

    assert client.delete(f"/recurring-expenses/{template['id']}", headers=headers).status_code == 204
    assert client.get(f"/recurring-expenses/{template['id']}", headers=headers).status_code == 404
    assert len(client.get("/expenses", headers=headers).json()["expenses"]) == 1


def test_patch_ignores_null_text_fields(client, headers):
    template = _create(client, headers)
    resp = client.patch(
        f"/recurring-expenses/{template['id']}", json={"category": None, "amount": 50}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["category"] == template["category"]
    assert resp.json()["amount"] == 50
