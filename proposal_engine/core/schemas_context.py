"""Pydantic schemas for the proposal context threaded through the pipeline.

Stages:  init → validate → enrich → reason → compile → complete
         (any non-terminal stage) → error

The context is created once per request by the orchestrator, mutated in place
by every plugin, and handed to the document renderer once it is terminal.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# =======================
# Shared types
# =======================

OutputFormatLiteral = Literal["pdf", "docx", "html"]
PricingProgramLiteral = Literal["dual_pricing", "interchange_plus", "flat_rate"]


class ProposalStage(str, Enum):
    """Position of a context in the pipeline state machine."""

    INIT = "init"
    VALIDATE = "validate"
    ENRICH = "enrich"
    REASON = "reason"
    COMPILE = "compile"
    COMPLETE = "complete"
    ERROR = "error"


STAGE_ORDER: list[ProposalStage] = [
    ProposalStage.INIT,
    ProposalStage.VALIDATE,
    ProposalStage.ENRICH,
    ProposalStage.REASON,
    ProposalStage.COMPILE,
    ProposalStage.COMPLETE,
]

# Stages a plugin may be tagged with, in execution order
PLUGIN_STAGES: list[ProposalStage] = [
    ProposalStage.VALIDATE,
    ProposalStage.ENRICH,
    ProposalStage.REASON,
    ProposalStage.COMPILE,
]

TERMINAL_STAGES = frozenset({ProposalStage.COMPLETE, ProposalStage.ERROR})


class StageTransitionError(Exception):
    """Raised when a context is asked to move backward, repeat, or leave a terminal stage."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =======================
# Merchant-facing data
# =======================


class MerchantData(BaseModel):
    """Merchant data supplied by the caller."""

    business_name: str = Field("", description="Legal or trading name of the business")
    owner_name: str | None = Field(None, description="Owner or decision maker")
    email: str | None = Field(None, description="Contact email")
    phone: str | None = Field(None, description="Contact phone")
    website: str | None = Field(None, description="Business website (scheme optional)")
    address: str | None = Field(None, description="Street address")
    industry: str | None = Field(None, description="Free-text industry")
    monthly_volume: float | None = Field(None, ge=0, description="Monthly card volume in dollars")
    average_ticket: float | None = Field(None, gt=0, description="Average transaction size in dollars")
    rep_notes: str | None = Field(None, description="Free-text notes from the sales rep")


class LogoData(BaseModel):
    """Logo candidate found on the merchant website."""

    url: str
    format: str
    confidence: float = Field(..., ge=0, le=1)


class EnrichedData(BaseModel):
    """Data populated only by enrich-stage plugins."""

    business_description: str | None = None
    services: list[str] = Field(default_factory=list)
    brand_language: str | None = None
    social_proof: list[str] = Field(default_factory=list)
    logo: LogoData | None = None
    competitor_info: str | None = None
    industry_insights: str | None = None


class Citation(BaseModel):
    """A sourced claim backing numeric or factual output."""

    source: str
    reference: str
    confidence: float = Field(..., ge=0, le=1)


class CurrentRates(BaseModel):
    """Rates on the merchant's current processing statement."""

    qualified_rate: float | None = None
    mid_qualified_rate: float | None = None
    non_qualified_rate: float | None = None
    monthly_fee: float | None = None
    transaction_fee: float | None = None


class CardBucket(BaseModel):
    """Volume and cost for one card-network bucket."""

    volume: float
    transactions: int
    cost: float
    rate: float


class DualPricingSavings(BaseModel):
    """Projection of a zero-fee program where a service fee offsets processing cost."""

    service_fee_collected: float
    net_cost_to_merchant: float = Field(..., ge=0)
    annual_savings: float


class InterchangeCalculation(BaseModel):
    """Wholesale (interchange + assessment) cost breakdown for a merchant."""

    monthly_volume: float
    average_ticket: float
    transaction_count: int
    card_mix: dict[str, float]
    category: str
    is_card_present: bool
    category_benchmark_rate: float

    interchange_cost: float
    assessment_cost: float
    total_wholesale_cost: float
    effective_rate: float

    breakdown: dict[str, CardBucket]
    dual_pricing_savings: DualPricingSavings


class SavingsProjection(BaseModel):
    """Current vs proposed monthly cost for one pricing program."""

    program: PricingProgramLiteral
    current_effective_rate: float
    current_monthly_cost: float
    proposed_rate: float
    proposed_monthly_cost: float
    monthly_savings: float
    annual_savings: float


class PricingData(BaseModel):
    """Data populated only by reasoning/calculation plugins."""

    current_processor: str | None = None
    current_rates: CurrentRates | None = None
    proposed_program: PricingProgramLiteral | None = None
    projected_savings: float | None = None
    citations: list[Citation] = Field(default_factory=list)
    interchange_calculation: InterchangeCalculation | None = None
    savings_analysis: SavingsProjection | None = None


class EquipmentSelection(BaseModel):
    """Terminal or POS equipment chosen for the proposal."""

    product_id: int
    product_name: str
    vendor: str
    price: float | None = None
    features: list[str] = Field(default_factory=list)


class SalespersonInfo(BaseModel):
    """Rep presenting the proposal."""

    name: str
    title: str | None = None
    email: str | None = None
    phone: str | None = None
    photo_url: str | None = None


class ProposalContent(BaseModel):
    """Proposal copy produced by the compile stage."""

    headline: str = ""
    executive_summary: str = ""
    value_propositions: list[str] = Field(default_factory=list)
    savings_summary: str = ""
    next_steps: list[str] = Field(default_factory=list)
    call_to_action: str = ""


# =======================
# Audit
# =======================


class AuditEntry(BaseModel):
    """Immutable record of one plugin execution attempt (or orchestrator event)."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)
    stage: ProposalStage
    plugin: str
    model: str | None = None
    action: str
    duration_ms: float | None = None
    success: bool
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# =======================
# Request / context
# =======================


class ProposalRequest(BaseModel):
    """Caller-facing input to ProposalOrchestrator.execute()."""

    user_id: str
    organization_id: int
    merchant_data: MerchantData
    salesperson: SalespersonInfo
    selected_equipment: EquipmentSelection | None = None
    output_format: OutputFormatLiteral | None = None


class ProposalContext(BaseModel):
    """The single mutable record carried through every stage and plugin.

    ``audit``, ``citations``, ``errors`` and ``warnings`` are append-only; use
    the ``add_*`` helpers rather than reassigning them. ``stage`` changes only
    through ``transition_to``.
    """

    id: str = Field(default_factory=lambda: str(uuid4()), frozen=True)
    user_id: str
    organization_id: int
    merchant_data: MerchantData
    enriched_data: EnrichedData = Field(default_factory=EnrichedData)
    pricing_data: PricingData = Field(default_factory=PricingData)
    selected_equipment: EquipmentSelection | None = None
    salesperson: SalespersonInfo
    output_format: OutputFormatLiteral = "pdf"
    proposal_content: ProposalContent | None = None
    stage: ProposalStage = ProposalStage.INIT
    audit: list[AuditEntry] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        """Whether the pipeline has finished with this context."""
        return self.stage in TERMINAL_STAGES

    def add_audit(self, entry: AuditEntry) -> None:
        self.audit.append(entry)

    def add_citation(self, citation: Citation) -> None:
        self.citations.append(citation)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def transition_to(self, target: ProposalStage) -> None:
        """Move the context to ``target``.

        Only the next stage in STAGE_ORDER, or ERROR from any non-terminal
        stage, is accepted.

        Raises:
            StageTransitionError: If the move is backward, a repeat, a skip,
                or starts from a terminal stage
        """
        if self.is_terminal:
            raise StageTransitionError(
                f"Context {self.id} is terminal ({self.stage.value}); cannot move to {target.value}"
            )

        if target != ProposalStage.ERROR:
            current_idx = STAGE_ORDER.index(self.stage)
            target_idx = STAGE_ORDER.index(target)
            if target_idx != current_idx + 1:
                raise StageTransitionError(
                    f"Cannot move from {self.stage.value} to {target.value}"
                )

        self.stage = target
        self.updated_at = _utcnow()
