"""API endpoints for proposal generation and pipeline administration."""

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from proposal_engine.core.config import get_settings
from proposal_engine.core.logging import get_logger
from proposal_engine.core.model_router import AllProvidersFailedError, ModelRouter
from proposal_engine.core.orchestrator import ProposalOrchestrator
from proposal_engine.core.plugin_manager import PluginManager
from proposal_engine.core.schemas_context import (
    MerchantData,
    OutputFormatLiteral,
    ProposalRequest,
    ProposalStage,
    SalespersonInfo,
)
from proposal_engine.core.schemas_models import ModelProvider, ModelTask, TaskTypeLiteral
from proposal_engine.plugins import build_plugin_manager

logger = get_logger(__name__)

router = APIRouter(prefix="/proposals", tags=["proposals"])

DEFAULT_SALESPERSON = SalespersonInfo(name="Merchant Services Representative", title="Account Executive")


# ============================================================================
# Process-wide pipeline objects
# ============================================================================


@lru_cache
def get_model_router() -> ModelRouter:
    return ModelRouter()


@lru_cache
def get_plugin_manager() -> PluginManager:
    return build_plugin_manager(get_model_router())


@lru_cache
def get_orchestrator() -> ProposalOrchestrator:
    return ProposalOrchestrator(
        get_plugin_manager(),
        halt_on_validation_errors=get_settings().HALT_ON_VALIDATION_ERRORS,
    )


# ============================================================================
# Request / response bodies
# ============================================================================


class GenerateMerchantData(MerchantData):
    business_name: str = Field(..., min_length=1, description="Legal or trading name of the business")


class GenerateProposalRequest(BaseModel):
    merchant_data: GenerateMerchantData
    salesperson: SalespersonInfo | None = None
    output_format: OutputFormatLiteral | None = None
    user_id: str = Field("anonymous", description="Requesting user")
    organization_id: int = Field(1, description="Requesting organization")


class TogglePluginRequest(BaseModel):
    enabled: bool


class TestModelRequest(BaseModel):
    prompt: str | None = None
    provider: ModelProvider | None = None
    task_type: TaskTypeLiteral | None = None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/generate")
async def generate_proposal(
    body: GenerateProposalRequest,
    orchestrator: ProposalOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Run the full pipeline for one merchant and return the final context."""
    request = ProposalRequest(
        user_id=body.user_id,
        organization_id=body.organization_id,
        merchant_data=MerchantData.model_validate(body.merchant_data.model_dump()),
        salesperson=body.salesperson or DEFAULT_SALESPERSON,
        output_format=body.output_format or "pdf",
    )

    logger.info(f"[ProposalAPI] Generating proposal for: {request.merchant_data.business_name}")
    context = await orchestrator.execute(request)

    return {
        "success": context.stage == ProposalStage.COMPLETE,
        "proposal_id": context.id,
        "stage": context.stage.value,
        "merchant_data": context.merchant_data.model_dump(mode="json"),
        "enriched_data": context.enriched_data.model_dump(mode="json"),
        "pricing_data": context.pricing_data.model_dump(mode="json"),
        "proposal_content": (
            context.proposal_content.model_dump(mode="json") if context.proposal_content else None
        ),
        "audit": [entry.model_dump(mode="json") for entry in context.audit],
        "citations": [c.model_dump(mode="json") for c in context.citations],
        "errors": context.errors,
        "warnings": context.warnings,
    }


@router.get("/status")
async def get_status(
    plugin_manager: PluginManager = Depends(get_plugin_manager),
    model_router: ModelRouter = Depends(get_model_router),
) -> dict[str, Any]:
    """Registered plugins, configured providers and capability flags."""
    return {
        "status": "operational",
        "version": "1.0.0",
        "plugins": [
            {
                "id": p.id,
                "name": p.name,
                "version": p.version,
                "stage": p.stage.value,
                "priority": p.priority,
                "enabled": plugin_manager.is_enabled(p.id),
            }
            for p in plugin_manager.get_all_plugins()
        ],
        "available_providers": [p.value for p in model_router.get_available_providers()],
        "capabilities": {
            "validation": plugin_manager.is_enabled("field-validation"),
            "web_scraping": plugin_manager.is_enabled("web-scraper"),
            "interchange": plugin_manager.is_enabled("interchange-calculator"),
            "ai_generation": plugin_manager.is_enabled("proposal-writer"),
        },
    }


@router.post("/plugins/{plugin_id}/toggle")
async def toggle_plugin(
    plugin_id: str,
    body: TogglePluginRequest,
    plugin_manager: PluginManager = Depends(get_plugin_manager),
) -> dict[str, Any]:
    """Enable or disable a registered plugin."""
    if not plugin_manager.set_enabled(plugin_id, body.enabled):
        raise HTTPException(status_code=404, detail="Plugin not found")

    return {"plugin_id": plugin_id, "enabled": plugin_manager.is_enabled(plugin_id)}


@router.post("/test-model")
async def test_model(
    body: TestModelRequest,
    model_router: ModelRouter = Depends(get_model_router),
) -> dict[str, Any]:
    """Send a prompt through the router; useful for checking credentials."""
    task = ModelTask(
        type=body.task_type or "general",
        prompt=body.prompt or "Say hello in one sentence.",
    )

    try:
        response = await model_router.route(task, body.provider)
    except AllProvidersFailedError as e:
        logger.warning(f"[ProposalAPI] Model test failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e

    return {
        "success": True,
        "response": response.content,
        "model": response.model,
        "provider": response.provider.value,
        "latency_ms": response.latency_ms,
        "fallback_used": response.fallback_used,
    }
