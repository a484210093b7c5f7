"""Tests for the informational endpoints and error rendering."""

from config.model_config import FLUX_KONTEXT, NANO_BANANA


class TestInfoEndpoints:
    """Health, root and model listing."""

    def test_health(self, anon_client):
        response = anon_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert set(body["available_models"]) == {FLUX_KONTEXT, NANO_BANANA}

    def test_root_lists_endpoints(self, anon_client):
        body = anon_client.get("/").json()

        assert body["endpoints"]["generate"] == "/api/generate"
        assert body["endpoints"]["stripe_webhook"] == "/api/webhooks/stripe"

    def test_models(self, anon_client):
        models = anon_client.get("/api/models").json()["models"]

        assert [model["id"] for model in models] == [FLUX_KONTEXT, NANO_BANANA]
        assert all(model["name"] and model["description"] for model in models)


class TestErrorRendering:
    """Errors come back as ``{"error": ...}``."""

    def test_unknown_route(self, anon_client):
        response = anon_client.get("/api/nothing-here")

        assert response.status_code == 404
        assert "error" in response.json()

    def test_protected_route_without_token(self, anon_client):
        response = anon_client.get("/api/subscription")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_invalid_token(self, anon_client):
        response = anon_client.get("/api/projects", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"].startswith("Invalid token")

    def test_invalid_request_body(self, client):
        response = client.post(
            "/api/create-subscription-checkout",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Invalid request"
        assert body["details"]
        assert "detail" not in body

    def test_invalid_query_parameter(self, client):
        response = client.get("/api/projects", params={"limit": 500})

        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request"
        assert response.json()["details"][0]["loc"] == ["query", "limit"]
