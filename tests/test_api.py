"""
HTTP-level tests: envelopes, authentication and routing through the full
middleware stack, with repositories and the payment gateway replaced by fakes.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.shared.core.security import get_security_manager
from app.modules.subscription_management.presentation.dependencies import (
    get_payment_gateway,
    get_payment_repository,
    get_promotional_code_repository,
    get_subscription_repository,
)
from tests.conftest import USER_EMAIL, USER_ID, welcome_code
from tests.fakes import (
    FakePaymentGateway,
    FakePaymentRepository,
    FakePromotionalCodeRepository,
    FakeSubscriptionRepository,
)

ADMIN_ID = "5c4b3a29-1807-4f6e-9d5c-4b3a29180706"


def _auth(user_id: str = USER_ID, role: str = "user") -> dict:
    token = get_security_manager().create_access_token(user_id, email=USER_EMAIL, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_gateway():
    return FakePaymentGateway()


@pytest.fixture
def api_payments():
    return FakePaymentRepository()


@pytest.fixture
def api_subscriptions(api_payments):
    return FakeSubscriptionRepository(api_payments)


@pytest.fixture
def client(api_gateway, api_payments, api_subscriptions):
    promotional_codes = FakePromotionalCodeRepository([welcome_code()])

    app.dependency_overrides[get_payment_repository] = lambda: api_payments
    app.dependency_overrides[get_subscription_repository] = lambda: api_subscriptions
    app.dependency_overrides[get_promotional_code_repository] = lambda: promotional_codes
    app.dependency_overrides[get_payment_gateway] = lambda: api_gateway

    # No context manager: the lifespan would connect to the database
    yield TestClient(app)

    app.dependency_overrides.clear()


# =============================================================================
# PUBLIC CATALOG
# =============================================================================

def test_tiers_are_public(client):
    response = client.get("/api/subscriptions/tiers")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [tier["id"] for tier in body["data"]] == ["essential", "showcase", "spotlight"]
    assert body["data"][1]["prices"]["yearly"] == 299.0
    assert response.headers["X-API-Version"] == "v1"
    assert "X-Request-ID" in response.headers


def test_request_id_is_propagated(client):
    response = client.get("/api/subscriptions/tiers", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_price_table(client):
    response = client.get("/api/subscriptions/pricing")
    assert response.status_code == 200
    assert len(response.json()["data"]) == 9


def test_calculate_price_with_code(client):
    response = client.post(
        "/api/subscriptions/pricing/calculate",
        json={"tier": "showcase", "billing_cycle": "yearly", "promotional_code": "welcome10"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["base_price"] == 299.0
    assert data["discount_applied"] == 29.9
    assert data["final_price"] == 269.1
    assert data["savings"] == 78.9
    assert data["promotional_code_valid"] is True


def test_invalid_body_uses_validation_envelope(client):
    response = client.post("/api/subscriptions/pricing/calculate", json={"tier": "gold"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"]["errors"][0]["field"] == "tier"
    assert body["request_id"]


# =============================================================================
# AUTHENTICATION
# =============================================================================

def test_protected_route_requires_token(client):
    response = client.get("/api/subscriptions")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"


def test_invalid_token_is_rejected(client):
    response = client.get("/api/subscriptions", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["success"] is False


def test_admin_routes_reject_regular_users(client):
    response = client.get("/api/subscriptions/promotional", headers=_auth())
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"


def test_admin_can_create_and_list_codes(client):
    headers = _auth(ADMIN_ID, role="admin")
    created = client.post(
        "/api/subscriptions/promotional",
        headers=headers,
        json={"code": "launch", "discount_type": "fixed_amount", "discount_value": 5},
    )
    assert created.status_code == 201
    assert created.json()["data"]["code"] == "LAUNCH"

    listed = client.get("/api/subscriptions/promotional", headers=headers)
    assert sorted(code["code"] for code in listed.json()["data"]) == ["LAUNCH", "WELCOME10"]


# =============================================================================
# SUBSCRIPTION FLOWS
# =============================================================================

def test_subscribe_and_read_back(client):
    headers = _auth()
    response = client.post(
        "/api/subscriptions",
        headers=headers,
        json={"tier": "showcase", "billing_cycle": "monthly", "payment_method_id": "pm_card_visa"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["subscription"]["tier"] == "showcase"
    assert data["subscription"]["status"] == "active"
    assert data["payment"]["amount"] == 29.0

    current = client.get("/api/subscriptions/current", headers=headers).json()["data"]
    assert current["effective_tier"] == "showcase"
    assert current["subscription"]["id"] == data["subscription"]["id"]

    history = client.get("/api/subscriptions/billing-history", headers=headers).json()["data"]
    assert len(history) == 1

    listed = client.get("/api/subscriptions", headers=headers).json()["data"]
    assert listed["total"] == 1


def test_declined_card_returns_402(client, api_gateway):
    api_gateway.decline_with = "card_declined"

    response = client.post("/api/subscriptions", headers=_auth(), json={"tier": "spotlight"})

    assert response.status_code == 402
    body = response.json()
    assert body["error"]["code"] == "PAYMENT_REQUIRED"
    assert body["error"]["details"]["decline_code"] == "card_declined"


def test_essential_trial_is_a_business_rule_violation(client):
    response = client.post("/api/subscriptions/trial/start", headers=_auth(), json={"tier": "essential"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "BUSINESS_RULE_VIOLATION"
    assert error["details"]["rule"] == "tier_not_trial_eligible"


def test_trial_then_status(client):
    headers = _auth()
    started = client.post("/api/subscriptions/trial/start", headers=headers, json={"tier": "spotlight"})
    assert started.status_code == 201
    assert started.json()["data"]["days_remaining"] == 14

    status = client.get("/api/subscriptions/trial/status", headers=headers).json()["data"]
    assert status["tier"] == "spotlight"
    assert status["is_active"] is True


def test_upgrade_preview_and_cancel(client):
    headers = _auth()
    subscription_id = client.post(
        "/api/subscriptions", headers=headers, json={"tier": "showcase"}
    ).json()["data"]["subscription"]["id"]

    preview = client.post(
        f"/api/subscriptions/{subscription_id}/upgrade",
        headers=headers,
        json={"new_tier": "spotlight", "preview": True},
    )
    assert preview.status_code == 200
    assert preview.json()["message"] == "Proration preview"
    assert preview.json()["data"]["applied"] is False

    cancelled = client.post(
        f"/api/subscriptions/{subscription_id}/cancel",
        headers=headers,
        json={"reason": "Closing the business"},
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"


def test_concurrent_change_returns_409(client, api_subscriptions):
    headers = _auth()
    subscription_id = client.post(
        "/api/subscriptions", headers=headers, json={"tier": "showcase"}
    ).json()["data"]["subscription"]["id"]

    api_subscriptions.conflict_on_save = True
    response = client.post(f"/api/subscriptions/{subscription_id}/cancel", headers=headers, json={})

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "CONCURRENT_MODIFICATION"
    assert body["error"]["details"]["resource_id"] == subscription_id

    api_subscriptions.conflict_on_save = False
    current = client.get("/api/subscriptions/current", headers=headers).json()["data"]
    assert current["subscription"]["status"] == "active"


def test_subscription_history(client):
    headers = _auth()
    subscription_id = client.post(
        "/api/subscriptions", headers=headers, json={"tier": "showcase"}
    ).json()["data"]["subscription"]["id"]

    response = client.get(f"/api/subscriptions/{subscription_id}/history", headers=headers)
    assert response.status_code == 200
    events = response.json()["data"]
    assert [event["event_type"] for event in events] == ["subscribed"]
    assert events[0]["event_data"]["tier"] == "showcase"

    other = client.get(f"/api/subscriptions/{subscription_id}/history", headers=_auth(ADMIN_ID))
    assert other.status_code == 403
    assert other.json()["error"]["code"] == "AUTHORIZATION_ERROR"


def test_features_for_requested_tier(client):
    response = client.get("/api/subscriptions/features?tier=spotlight", headers=_auth())
    data = response.json()["data"]
    assert data["tier"] == "spotlight"
    assert data["is_current_tier"] is False
    assert "Custom Branding" in data["features"]


# =============================================================================
# PAYMENTS
# =============================================================================

def test_no_failed_payments(client):
    response = client.get("/api/payments/failed", headers=_auth())
    assert response.status_code == 200
    assert response.json()["data"] == []


def test_retry_unknown_payment_is_404(client):
    response = client.post(
        "/api/payments/00000000-0000-4000-8000-000000000000/retry",
        headers=_auth(),
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here", headers=_auth())
    assert response.status_code == 404
    assert response.json()["success"] is False
