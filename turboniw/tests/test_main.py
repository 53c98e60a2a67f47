import asyncio
import json

from turboniw import main as turboniw_main
from turboniw.app.billing import ProviderUnavailable


def test_health_reports_version():
    body = turboniw_main.health()

    assert body["status"] == "healthy"
    assert body["version"] == turboniw_main.APP_VERSION
    assert body["timestamp"]


def test_routes_are_registered():
    paths = {getattr(route, "path", None) for route in turboniw_main.app.routes}

    assert {
        "/api/register",
        "/api/login",
        "/api/logout",
        "/api/me",
        "/api/stripe-config",
        "/api/create-checkout-session",
        "/api/checkout/confirm",
        "/api/stripe-webhook",
        "/api/payments",
        "/api/surveys/{kind}",
        "/api/surveys/{kind}/me",
        "/api/admin/surveys",
        "/api/admin/export",
        "/api/admin/entitlements",
        "/api/admin/payments",
        "/api/health",
    } <= paths


def test_store_errors_are_rendered_with_their_status():
    class _Request:
        class url:
            path = "/api/checkout/confirm"

    response = asyncio.run(
        turboniw_main.entitlement_store_error_handler(_Request(), ProviderUnavailable("retrieve"))
    )

    assert response.status_code == 503
    assert json.loads(response.body)["detail"]["error"] == "payment_provider_unavailable"
