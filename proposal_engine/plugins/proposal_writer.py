"""Proposal copy writer (compile stage, AI writing)."""

import json
import logging

from pydantic import ValidationError

from proposal_engine.core.interchange_rates import DUAL_PRICING_COMPLIANCE
from proposal_engine.core.llm import parse_llm_json
from proposal_engine.core.logging import get_logger, log_with_context
from proposal_engine.core.model_router import AllProvidersFailedError, ModelRouter
from proposal_engine.core.plugin_manager import ProposalPlugin
from proposal_engine.core.schemas_context import (
    AuditEntry,
    ProposalContent,
    ProposalContext,
    ProposalStage,
)
from proposal_engine.core.schemas_models import ModelTask

logger = get_logger(__name__)

WRITER_SYSTEM_PROMPT = (
    "You are a payment processing sales writer. Write persuasive, accurate proposal copy. "
    "Use only the figures provided. Return valid JSON."
)

WRITER_PROMPT = """\
Write a merchant services proposal for the business below.

Business: {business_name}
Owner: {owner_name}
Industry: {industry}
Description: {description}
Services: {services}
Brand voice: {brand_language}

Monthly card volume: ${monthly_volume}
Current effective rate: {current_rate}
Proposed program: {program}
Projected annual savings: ${annual_savings}
{compliance}
Presented by: {salesperson}
Rep notes: {rep_notes}

Return JSON:
{{
  "headline": "one line",
  "executive_summary": "2-3 sentences",
  "value_propositions": ["3-5 short benefits"],
  "savings_summary": "one paragraph using the savings figures above",
  "next_steps": ["2-4 concrete steps"],
  "call_to_action": "one sentence"
}}
"""


def build_writer_prompt(context: ProposalContext) -> str:
    merchant = context.merchant_data
    enriched = context.enriched_data
    pricing = context.pricing_data
    savings = pricing.savings_analysis
    program = pricing.proposed_program or "dual_pricing"

    compliance = ""
    if program == "dual_pricing":
        compliance = "Dual pricing requirements the merchant must follow:\n" + "".join(
            f"- {item}\n" for item in DUAL_PRICING_COMPLIANCE
        )

    return WRITER_PROMPT.format(
        business_name=merchant.business_name or "Unknown",
        owner_name=merchant.owner_name or "Unknown",
        industry=merchant.industry or "Unknown",
        description=enriched.business_description or "Not available",
        services=", ".join(enriched.services) or "Not available",
        brand_language=enriched.brand_language or "professional",
        monthly_volume=f"{merchant.monthly_volume:,.2f}" if merchant.monthly_volume else "unknown",
        current_rate=f"{savings.current_effective_rate}%" if savings else "unknown",
        program=program,
        compliance=compliance,
        annual_savings=f"{pricing.projected_savings:,.2f}" if pricing.projected_savings is not None else "unknown",
        salesperson=context.salesperson.name,
        rep_notes=merchant.rep_notes or "None",
    )


class ProposalWriterPlugin(ProposalPlugin):
    id = "proposal-writer"
    name = "Proposal Writer"
    version = "1.0.0"
    stage = ProposalStage.COMPILE
    enabled = True
    priority = 10

    def __init__(self, router: ModelRouter):
        self.router = router

    async def run(self, context: ProposalContext) -> ProposalContext:
        if not self.router.get_available_providers():
            logger.warning("[ProposalWriter] No AI provider configured, skipping proposal copy")
            context.add_warning("No AI provider configured; proposal copy was not generated")
            return context

        task = ModelTask(
            type="writing",
            system_prompt=WRITER_SYSTEM_PROMPT,
            prompt=build_writer_prompt(context),
        )

        try:
            response = await self.router.route(task)
        except AllProvidersFailedError as e:
            log_with_context(
                logger, logging.WARNING, f"Proposal copy generation failed: {e}",
                proposal_id=context.id, stage=self.stage, plugin=self.id,
            )
            context.add_warning(f"Proposal copy unavailable: {e}")
            return context

        try:
            content = parse_llm_json(response.content, ProposalContent)
        except (json.JSONDecodeError, ValueError, ValidationError) as e:
            logger.warning(f"[ProposalWriter] Could not parse proposal copy: {e}")
            context.add_warning("Proposal copy returned unreadable output")
            return context

        context.proposal_content = content
        context.add_audit(AuditEntry(
            stage=ProposalStage.COMPILE,
            plugin=self.id,
            model=response.model,
            action="Proposal copy generated",
            success=True,
            metadata={
                "provider": response.provider.value,
                "fallback_used": response.fallback_used,
                "latency_ms": response.latency_ms,
            },
        ))

        log_with_context(
            logger, logging.INFO, "Proposal copy generated",
            proposal_id=context.id, stage=self.stage, plugin=self.id,
            model=response.model, fallback_used=response.fallback_used,
        )
        return context
