"""Tests for the /v1/proposals endpoints via FastAPI TestClient with fake providers."""

import json

import pytest
from fastapi.testclient import TestClient

from proposal_engine.api.proposals import get_model_router, get_orchestrator, get_plugin_manager
from proposal_engine.core.orchestrator import ProposalOrchestrator
from proposal_engine.core.schemas_models import ModelProvider
from proposal_engine.main import app
from proposal_engine.plugins import build_plugin_manager
from tests.fakes.fake_providers import FakeProvider, failing, make_router

PROPOSAL_JSON = json.dumps({
    "headline": "Stop paying to get paid",
    "executive_summary": "Summary.",
    "value_propositions": ["Zero fees"],
    "savings_summary": "Big savings.",
    "next_steps": ["Sign"],
    "call_to_action": "Call us.",
})


@pytest.fixture
def pipeline():
    """Fresh router, registry and orchestrator wired into the app."""
    router = make_router(claude=FakeProvider(ModelProvider.CLAUDE, response=PROPOSAL_JSON))
    manager = build_plugin_manager(router)
    orchestrator = ProposalOrchestrator(manager)

    app.dependency_overrides[get_model_router] = lambda: router
    app.dependency_overrides[get_plugin_manager] = lambda: manager
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield router, manager
    app.dependency_overrides.clear()


@pytest.fixture
def client(pipeline) -> TestClient:
    return TestClient(app)


def test_health_check():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestGenerate:
    def test_generate_full_pipeline(self, client):
        response = client.post("/v1/proposals/generate", json={
            "merchant_data": {
                "business_name": "Joe's Pizza",
                "owner_name": "Joe",
                "industry": "restaurant",
                "monthly_volume": 50000,
                "average_ticket": 50,
            },
            "salesperson": {"name": "Dana Rep"},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["stage"] == "complete"
        assert data["proposal_id"]
        assert data["pricing_data"]["proposed_program"] == "dual_pricing"
        assert data["pricing_data"]["interchange_calculation"]["category"] == "restaurant"
        assert data["proposal_content"]["headline"] == "Stop paying to get paid"
        assert data["errors"] == []

        plugins_run = [entry["plugin"] for entry in data["audit"]]
        assert plugins_run[0] == "orchestrator"
        assert "field-validation" in plugins_run
        assert "interchange-calculator" in plugins_run
        assert "proposal-writer" in plugins_run

    def test_missing_business_name_is_422(self, client):
        response = client.post("/v1/proposals/generate", json={"merchant_data": {"business_name": ""}})
        assert response.status_code == 422

    def test_bad_output_format_is_422(self, client):
        response = client.post("/v1/proposals/generate", json={
            "merchant_data": {"business_name": "X"},
            "output_format": "pptx",
        })
        assert response.status_code == 422

    def test_disabled_writer_leaves_no_content(self, client, pipeline):
        _, manager = pipeline
        manager.set_enabled("proposal-writer", False)

        response = client.post("/v1/proposals/generate", json={"merchant_data": {"business_name": "X"}})

        data = response.json()
        assert data["success"] is True
        assert data["proposal_content"] is None
        assert len(data["warnings"]) >= 2


class TestStatus:
    def test_status(self, client):
        data = client.get("/v1/proposals/status").json()

        assert data["status"] == "operational"
        assert [p["id"] for p in data["plugins"]] == [
            "field-validation", "web-scraper", "interchange-calculator", "proposal-writer",
        ]
        assert data["available_providers"] == ["claude"]
        assert data["capabilities"]["ai_generation"] is True


class TestTogglePlugin:
    def test_toggle(self, client):
        response = client.post("/v1/proposals/plugins/web-scraper/toggle", json={"enabled": False})

        assert response.status_code == 200
        assert response.json() == {"plugin_id": "web-scraper", "enabled": False}
        status = client.get("/v1/proposals/status").json()
        assert status["capabilities"]["web_scraping"] is False

    def test_unknown_plugin_is_404(self, client):
        response = client.post("/v1/proposals/plugins/ghost/toggle", json={"enabled": True})
        assert response.status_code == 404


class TestModelEndpoint:
    def test_default_prompt(self, client):
        response = client.post("/v1/proposals/test-model", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["provider"] == "claude"
        assert data["model"] == "claude-test-model"

    def test_all_providers_failed_is_503(self, client):
        app.dependency_overrides[get_model_router] = lambda: make_router(
            claude=failing(ModelProvider.CLAUDE, "down")
        )

        response = client.post("/v1/proposals/test-model", json={"prompt": "hi"})

        assert response.status_code == 503
        assert "All model providers failed" in response.json()["detail"]

    def test_unknown_provider_is_422(self, client):
        response = client.post("/v1/proposals/test-model", json={"provider": "mistral"})
        assert response.status_code == 422
