"""
HTTP-level tests for the project router, with the service layer replaced by
in-memory fakes through dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient

from fakes import helm_project, helm_service
from project_service.config import Settings
from project_service.dependencies import get_cleanup_queue, get_product_service
from project_service.main import create_app
from project_service.models import ImageSearchingRule


@pytest.fixture
def client(product_service, cleanup):
    # Not entered as a context manager: the lifespan (Mongo, RabbitMQ) stays off.
    app = create_app(Settings())
    app.dependency_overrides[get_product_service] = lambda: product_service
    app.dependency_overrides[get_cleanup_queue] = lambda: cleanup
    return TestClient(app)


class TestProjectRouter:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_not_ready_before_lifespan(self, client):
        resp = client.get("/health/ready")
        assert resp.status_code == 503
        assert resp.json() == {"status": "starting"}

    def test_list_products_as_super_user(self, client, products):
        products.docs["shop"] = helm_project("shop")

        resp = client.get("/project/products", headers={"X-User-ID": "1", "X-Super-User": "true"})

        assert resp.status_code == 200
        body = resp.json()
        assert body[0]["product_name"] == "shop"
        assert body[0]["role"] == "admin"
        assert "X-Correlation-ID" in resp.headers

    def test_missing_product_is_404(self, client):
        resp = client.get("/project/products/nope")

        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFoundError"

    def test_get_match_rules_defaults_to_presets(self, client, products):
        products.docs["shop"] = helm_project("shop")

        resp = client.get("/project/products/shop/match-rules")

        assert resp.status_code == 200
        assert [r["preset_id"] for r in resp.json()] == [1, 2, 3]

    def test_update_match_rules(self, client, products, services, counters):
        products.docs["shop"] = helm_project("shop")
        services.records.append(helm_service("api", "shop", "image: nginx:1.25\n"))
        counters.seed("service:api:shop", 1)
        rules = [ImageSearchingRule(image="image", in_use=True).model_dump()]

        resp = client.put(
            "/project/products/shop/match-rules", json={"rules": rules}, headers={"X-User-Name": "alice"}
        )

        assert resp.status_code == 200
        assert resp.json()[0]["image"] == "image"
        assert products.docs["shop"].update_by == "alice"

    def test_update_match_rules_without_in_use_rule(self, client, products):
        products.docs["shop"] = helm_project("shop")

        resp = client.put("/project/products/shop/match-rules", json={"rules": [{"image": "image"}]})

        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_malformed_values_is_400(self, client, products, services):
        products.docs["shop"] = helm_project("shop")
        services.records.append(helm_service("api", "shop", "image: [unclosed\n"))
        rules = [{"image": "image", "in_use": True}]

        resp = client.put("/project/products/shop/match-rules", json={"rules": rules})

        assert resp.status_code == 400
        assert resp.json()["error"] == "MalformedPayloadError"

    def test_bad_onboarding_status(self, client, products):
        products.docs["shop"] = helm_project("shop")

        assert client.put("/project/products/shop/onboarding", params={"status": "x"}).status_code == 400
        assert client.put("/project/products/shop/onboarding", params={"status": "2"}).json() == {"updated": True}

    def test_unknown_job_is_404(self, client):
        assert client.get("/project/jobs/missing").status_code == 404
