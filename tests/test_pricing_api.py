import pytest
from fastapi.testclient import TestClient

from erp_pricing.core.exceptions import PricingUnavailableError
from erp_pricing.database.connection import get_db
from erp_pricing.main import app
from erp_pricing.models.pricing_rule import PricingRule
from erp_pricing.routes.pricing import calculate_price as calculate_price_route
from erp_pricing.services.user_service import ensure_admin, get_user_by_username

PERCENT_RULE = {
    "name": "Product 42 ten percent",
    "rule_code": "P42-10",
    "rule_type": "percentage_discount",
    "priority": 5,
    "discount_percentage": 0.10,
    "targets": [{"target_type": "product", "target_ids": [42]}],
}

TIERED_RULE = {
    "name": "Bulk pricing",
    "rule_type": "quantity_discount",
    "priority": 1,
    "quantity_tiers": [
        {"min_quantity": 1, "max_quantity": 9, "tier_price": 100},
        {"min_quantity": 10, "tier_discount_percentage": 0.2},
    ],
}


@pytest.fixture()
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with_client = TestClient(app)
    yield with_client
    app.dependency_overrides.clear()


PASSWORD = "secret-pass"


def _login(client, username, password=PASSWORD):
    res = client.post("/auth/login", data={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _register(client, username, password=PASSWORD, **extra):
    res = client.post("/auth/register", json=dict(username=username, password=password, **extra))
    assert res.status_code == 200, res.text
    return res.json()


@pytest.fixture()
def admin_headers(client, db):
    ensure_admin(db, "admin_user", PASSWORD)
    return {"Authorization": f"Bearer {_login(client, 'admin_user')}"}


@pytest.fixture()
def user_headers(client):
    _register(client, "clerk")
    return {"Authorization": f"Bearer {_login(client, 'clerk')}"}


@pytest.fixture()
def store_id(client, admin_headers):
    res = client.post("/stores/", json={"name": "Main", "code": "MAIN"}, headers=admin_headers)
    assert res.status_code == 201, res.text
    return res.json()["id"]


@pytest.mark.order(1)
def test_register_login_refresh(client):
    client.post("/auth/register", json={"username": "alice", "password": "pa55word"})
    res = client.post("/auth/login", data={"username": "alice", "password": "pa55word"})
    assert res.status_code == 200
    tokens = res.json()
    assert tokens["token_type"] == "bearer"

    res = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200
    assert res.json()["access_token"]

    # an access token is not a refresh token
    res = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert res.status_code == 401

    res = client.post("/auth/login", data={"username": "alice", "password": "wrong"})
    assert res.status_code == 401


@pytest.mark.order(2)
def test_endpoints_require_auth(client):
    assert client.get("/stores/").status_code == 401
    assert client.post("/stores/1/pricing/evaluate", json={"line_items": []}).status_code == 401


@pytest.mark.order(3)
def test_create_and_read_rule(client, admin_headers, store_id):
    res = client.post(f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=admin_headers)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["store_id"] == store_id
    assert body["usage_count"] == 0
    assert body["targets"][0]["target_ids"] == [42]

    res = client.get(f"/pricing-rules/{body['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["name"] == PERCENT_RULE["name"]

    res = client.get(f"/stores/{store_id}/pricing-rules", headers=admin_headers)
    assert [r["id"] for r in res.json()] == [body["id"]]


@pytest.mark.order(4)
def test_non_admin_cannot_write_rules(client, user_headers, store_id):
    res = client.post(f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=user_headers)
    assert res.status_code == 403


@pytest.mark.order(4)
def test_self_registration_cannot_claim_admin(client, store_id):
    body = _register(client, "mallory", role="admin")
    assert body["role"] == "user"

    headers = {"Authorization": f"Bearer {_login(client, 'mallory')}"}
    res = client.post(f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=headers)
    assert res.status_code == 403


@pytest.mark.order(4)
def test_admin_promotes_user(client, db, admin_headers, user_headers):
    res = client.put("/auth/users/clerk/role", json={"role": "admin"}, headers=user_headers)
    assert res.status_code == 403

    res = client.put("/auth/users/clerk/role", json={"role": "admin"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["role"] == "admin"

    res = client.put("/auth/users/nobody/role", json={"role": "admin"}, headers=admin_headers)
    assert res.status_code == 404


@pytest.mark.order(4)
def test_configured_admin_is_created_or_promoted(client, db):
    assert ensure_admin(db, None, None) is None

    _register(client, "owner")
    assert ensure_admin(db, "owner", "ignored-pass").role == "admin"
    # existing password is kept
    assert _login(client, "owner")

    created = ensure_admin(db, "root_admin", PASSWORD)
    assert created.role == "admin"
    assert get_user_by_username(db, "root_admin").id == created.id


@pytest.mark.order(5)
def test_rule_validation(client, admin_headers, store_id):
    overlapping = dict(TIERED_RULE, quantity_tiers=[
        {"min_quantity": 1, "max_quantity": 10, "tier_price": 100},
        {"min_quantity": 10, "tier_price": 90},
    ])
    res = client.post(f"/stores/{store_id}/pricing-rules", json=overlapping, headers=admin_headers)
    assert res.status_code == 422

    two_outcomes = dict(TIERED_RULE, quantity_tiers=[
        {"min_quantity": 1, "tier_price": 100, "tier_discount_amount": 5},
    ])
    res = client.post(f"/stores/{store_id}/pricing-rules", json=two_outcomes, headers=admin_headers)
    assert res.status_code == 422

    missing_array = dict(PERCENT_RULE, rule_code=None, conditions=[
        {"condition_type": "client_has_tag", "operator": "in"},
    ])
    res = client.post(f"/stores/{store_id}/pricing-rules", json=missing_array, headers=admin_headers)
    assert res.status_code == 422


@pytest.mark.order(6)
def test_duplicate_rule_code_conflicts(client, admin_headers, store_id):
    assert client.post(f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=admin_headers).status_code == 201
    res = client.post(f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=admin_headers)
    assert res.status_code == 409
    # the session is still usable after the conflict
    assert client.get(f"/stores/{store_id}", headers=admin_headers).status_code == 200


@pytest.mark.order(7)
def test_unknown_store_and_rule(client, admin_headers):
    assert client.get("/stores/9999", headers=admin_headers).status_code == 404
    assert client.get("/pricing-rules/9999", headers=admin_headers).status_code == 404
    assert client.put("/pricing-rules/9999", json=PERCENT_RULE, headers=admin_headers).status_code == 404


@pytest.mark.order(8)
def test_evaluate_percentage_and_tiers(client, admin_headers, user_headers, store_id):
    client.post(f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=admin_headers)
    client.post(f"/stores/{store_id}/pricing-rules", json=TIERED_RULE, headers=admin_headers)

    payload = {
        "line_items": [
            {"product_id": 42, "quantity": 1, "unit_price": 100},
            {"product_id": 7, "quantity": 10, "unit_price": 100},
            {"product_id": 8, "quantity": 3, "unit_price": 120},
        ]
    }
    res = client.post(f"/stores/{store_id}/pricing/evaluate", json=payload, headers=user_headers)
    assert res.status_code == 200, res.text
    lines = res.json()["lines"]

    assert lines[0]["final_unit_price"] == pytest.approx(90.0)
    assert lines[1]["final_unit_price"] == pytest.approx(80.0)
    assert lines[2]["final_unit_price"] == pytest.approx(100.0)
    assert res.json()["final_total"] == pytest.approx(90 + 800 + 300)


@pytest.mark.order(9)
def test_update_replaces_children_and_deactivate(client, admin_headers, user_headers, store_id):
    rule_id = client.post(
        f"/stores/{store_id}/pricing-rules", json=PERCENT_RULE, headers=admin_headers
    ).json()["id"]

    update = dict(PERCENT_RULE, discount_percentage=0.25, targets=[{"target_type": "product", "target_ids": [7]}])
    res = client.put(f"/pricing-rules/{rule_id}", json=update, headers=admin_headers)
    assert res.status_code == 200
    assert [t["target_ids"] for t in res.json()["targets"]] == [[7]]

    cart = {"line_items": [{"product_id": 7, "quantity": 1, "unit_price": 100}]}
    res = client.post(f"/stores/{store_id}/pricing/evaluate", json=cart, headers=user_headers)
    assert res.json()["lines"][0]["final_unit_price"] == pytest.approx(75.0)

    res = client.delete(f"/pricing-rules/{rule_id}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["is_active"] is False

    res = client.post(f"/stores/{store_id}/pricing/evaluate", json=cart, headers=user_headers)
    assert res.json()["applied_rule_ids"] == []

    res = client.get(f"/stores/{store_id}/pricing-rules/active", headers=user_headers)
    assert res.json() == []

    res = client.post(f"/pricing-rules/{rule_id}/activate", headers=admin_headers)
    assert res.json()["is_active"] is True
    res = client.get(f"/stores/{store_id}/pricing-rules/active", headers=user_headers)
    assert [r["id"] for r in res.json()] == [rule_id]


@pytest.mark.order(10)
def test_finalize_records_usage(client, db, admin_headers, user_headers, store_id):
    rule = dict(PERCENT_RULE, usage_limit=1)
    rule_id = client.post(f"/stores/{store_id}/pricing-rules", json=rule, headers=admin_headers).json()["id"]

    payload = {
        "line_items": [{"product_id": 42, "quantity": 1, "unit_price": 100}],
        "client": {"client_id": 3, "tags": ["vip"]},
        "document_ref": "INV-0001",
    }
    first = client.post(f"/stores/{store_id}/pricing/finalize", json=payload, headers=user_headers)
    assert first.status_code == 200, first.text
    assert first.json()["applied_rule_ids"] == [rule_id]
    assert first.json()["document_ref"] == "INV-0001"

    second = client.post(
        f"/stores/{store_id}/pricing/finalize", json=dict(payload, document_ref="INV-0002"), headers=user_headers
    )
    assert second.json()["applied_rule_ids"] == []
    assert second.json()["final_total"] == pytest.approx(100.0)

    assert db.get(PricingRule, rule_id).usage_count == 1


@pytest.mark.order(11)
def test_rule_store_failure_returns_503(client, user_headers, store_id, monkeypatch):
    def unavailable(*args, **kwargs):
        raise PricingUnavailableError("Could not load pricing rules")

    monkeypatch.setattr(calculate_price_route, "evaluate_prices", unavailable)

    payload = {"line_items": [{"product_id": 42, "quantity": 1, "unit_price": 100}]}
    res = client.post(f"/stores/{store_id}/pricing/evaluate", json=payload, headers=user_headers)
    assert res.status_code == 503
    assert "lines" not in res.json()


@pytest.mark.order(12)
def test_health_and_metrics(client, admin_headers, user_headers):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["db_ok"] is True

    assert client.get("/metrics", headers=user_headers).status_code == 403
    res = client.get("/metrics", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["requests_count"] >= 1
