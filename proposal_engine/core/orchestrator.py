"""Proposal orchestrator: drives the fixed stage sequence.

    init → validate → enrich → reason → compile → complete
                 (unexpected stage failure) → error

Individual plugin failures are isolated by the PluginManager and never stop
the pipeline. Only an exception escaping run_stage itself is fatal.
"""

import json
import logging

from proposal_engine.core.logging import get_logger, log_with_context
from proposal_engine.core.plugin_manager import PluginManager
from proposal_engine.core.schemas_context import (
    PLUGIN_STAGES,
    AuditEntry,
    ProposalContext,
    ProposalRequest,
    ProposalStage,
)

logger = get_logger(__name__)


class ProposalOrchestrator:
    """Creates a context per request and runs it through every stage."""

    def __init__(self, plugin_manager: PluginManager, halt_on_validation_errors: bool = False):
        """
        Args:
            plugin_manager: Registry whose plugins run for each stage
            halt_on_validation_errors: Stop with stage=error when the validate
                stage records errors (default: warn and continue)
        """
        self.plugin_manager = plugin_manager
        self.halt_on_validation_errors = halt_on_validation_errors

    def create_context(self, request: ProposalRequest) -> ProposalContext:
        """Build a fresh context in the init stage with one creation audit entry."""
        context = ProposalContext(
            user_id=request.user_id,
            organization_id=request.organization_id,
            merchant_data=request.merchant_data.model_copy(deep=True),
            salesperson=request.salesperson,
            selected_equipment=request.selected_equipment,
            output_format=request.output_format or "pdf",
        )
        context.add_audit(AuditEntry(
            stage=ProposalStage.INIT,
            plugin="orchestrator",
            action="Context created",
            success=True,
            metadata={"request_user_id": request.user_id},
        ))
        return context

    async def execute(self, request: ProposalRequest) -> ProposalContext:
        """
        Run a proposal request through validate, enrich, reason and compile.

        Args:
            request: Caller request

        Returns:
            Terminal context (stage complete or error)
        """
        context = self.create_context(request)
        log_with_context(
            logger, logging.INFO, "Starting proposal generation",
            proposal_id=context.id, stage=context.stage,
            merchant=context.merchant_data.business_name,
        )

        for stage in PLUGIN_STAGES:
            context.transition_to(stage)
            log_with_context(logger, logging.DEBUG, "Entering stage", proposal_id=context.id, stage=stage)

            try:
                context = await self.plugin_manager.run_stage(stage, context)
            except Exception as e:
                log_with_context(
                    logger, logging.ERROR, f"Stage failed: {e}",
                    proposal_id=context.id, stage=stage, exc_info=True,
                )
                context.add_error(f"Stage {stage.value} failed: {e}")
                context.transition_to(ProposalStage.ERROR)
                break

            if stage == ProposalStage.VALIDATE and context.errors:
                log_with_context(
                    logger, logging.WARNING, "Validation recorded errors",
                    proposal_id=context.id, stage=stage,
                    errors=len(context.errors), halting=self.halt_on_validation_errors,
                )
                if self.halt_on_validation_errors:
                    context.add_error("Validation failed; pipeline halted")
                    context.transition_to(ProposalStage.ERROR)
                    break

        if context.stage != ProposalStage.ERROR:
            context.transition_to(ProposalStage.COMPLETE)

        log_with_context(
            logger, logging.INFO, "Proposal finished",
            proposal_id=context.id, stage=context.stage,
            errors=len(context.errors), warnings=len(context.warnings),
        )
        return context

    def get_audit_log(self, context: ProposalContext) -> str:
        """
        Serializable summary of a context's execution. No side effects.

        Args:
            context: Context to summarize

        Returns:
            Pretty-printed JSON string
        """
        models_used: list[str] = []
        for entry in context.audit:
            if entry.model and entry.model not in models_used:
                models_used.append(entry.model)

        summary = {
            "proposal_id": context.id,
            "user_id": context.user_id,
            "organization_id": context.organization_id,
            "merchant_name": context.merchant_data.business_name,
            "stage": context.stage.value,
            "plugins_run": [entry.plugin for entry in context.audit],
            "models_used": models_used,
            "total_duration_ms": round(sum(entry.duration_ms or 0 for entry in context.audit), 2),
            "errors": list(context.errors),
            "warnings": list(context.warnings),
            "citations": [c.model_dump() for c in context.citations],
            "created_at": context.created_at.isoformat(),
            "completed_at": context.updated_at.isoformat(),
        }
        return json.dumps(summary, indent=2)
