"""Tests for proposal_engine.core.schemas_context: context records and the stage machine."""

import pytest
from pydantic import ValidationError

from proposal_engine.core.schemas_context import (
    STAGE_ORDER,
    AuditEntry,
    Citation,
    MerchantData,
    ProposalStage,
    StageTransitionError,
)

# =============================================================================
# Stage machine
# =============================================================================


class TestStageTransitions:
    def test_new_context_starts_at_init(self, context):
        assert context.stage == ProposalStage.INIT
        assert not context.is_terminal

    def test_full_forward_walk(self, context):
        for stage in STAGE_ORDER[1:]:
            context.transition_to(stage)
        assert context.stage == ProposalStage.COMPLETE
        assert context.is_terminal

    def test_skip_is_rejected(self, context):
        with pytest.raises(StageTransitionError):
            context.transition_to(ProposalStage.ENRICH)
        assert context.stage == ProposalStage.INIT

    def test_backward_is_rejected(self, context):
        context.transition_to(ProposalStage.VALIDATE)
        context.transition_to(ProposalStage.ENRICH)
        with pytest.raises(StageTransitionError):
            context.transition_to(ProposalStage.VALIDATE)

    def test_repeat_is_rejected(self, context):
        context.transition_to(ProposalStage.VALIDATE)
        with pytest.raises(StageTransitionError):
            context.transition_to(ProposalStage.VALIDATE)

    @pytest.mark.parametrize("stage", [s for s in STAGE_ORDER if s != ProposalStage.COMPLETE])
    def test_error_reachable_from_any_non_terminal_stage(self, context, stage):
        for step in STAGE_ORDER[1:STAGE_ORDER.index(stage) + 1]:
            context.transition_to(step)
        context.transition_to(ProposalStage.ERROR)
        assert context.stage == ProposalStage.ERROR

    def test_terminal_stages_are_final(self, context):
        context.transition_to(ProposalStage.ERROR)
        with pytest.raises(StageTransitionError):
            context.transition_to(ProposalStage.ERROR)
        with pytest.raises(StageTransitionError):
            context.transition_to(ProposalStage.VALIDATE)

    def test_transition_updates_timestamp(self, context):
        before = context.updated_at
        context.transition_to(ProposalStage.VALIDATE)
        assert context.updated_at >= before


# =============================================================================
# Records
# =============================================================================


class TestContextRecords:
    def test_ids_are_unique(self, context, merchant, salesperson):
        other = type(context)(
            user_id="u", organization_id=1, merchant_data=merchant, salesperson=salesperson
        )
        assert context.id != other.id

    def test_id_is_frozen(self, context):
        with pytest.raises(ValidationError):
            context.id = "something-else"

    def test_append_helpers(self, context):
        context.add_error("bad")
        context.add_warning("meh")
        context.add_citation(Citation(source="s", reference="r", confidence=0.5))
        context.add_audit(AuditEntry(
            stage=ProposalStage.INIT, plugin="p", action="a", success=True,
        ))
        assert context.errors == ["bad"]
        assert context.warnings == ["meh"]
        assert len(context.citations) == 1
        assert len(context.audit) == 1

    def test_audit_entries_are_immutable(self):
        entry = AuditEntry(stage=ProposalStage.INIT, plugin="p", action="a", success=True)
        with pytest.raises(ValidationError):
            entry.success = False

    def test_citation_confidence_bounds(self):
        with pytest.raises(ValidationError):
            Citation(source="s", reference="r", confidence=1.5)

    def test_merchant_numeric_bounds(self):
        with pytest.raises(ValidationError):
            MerchantData(business_name="X", monthly_volume=-1)
        with pytest.raises(ValidationError):
            MerchantData(business_name="X", average_ticket=0)

    def test_empty_business_name_is_allowed(self):
        assert MerchantData().business_name == ""
