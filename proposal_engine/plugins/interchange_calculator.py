"""Interchange cost calculator plugin (pure computation, no AI).

Runs in the enrich stage after the web scraper (priority 25 vs 20) so an
industry inferred from the merchant website can drive the category.

    transactions  = volume / average ticket
    bucket cost   = bucket volume × rate% + bucket transactions × per-txn fee
    assessments   = bucket volume × network assessment rate
    wholesale     = Σ bucket cost + Σ assessments
    effective %   = wholesale / volume × 100

All monetary outputs are rounded to cents.
"""

import logging
import math

from proposal_engine.core.interchange_rates import (
    ASSESSMENT_RATES,
    AVERAGE_RATES_BY_CATEGORY,
    CARD_BUCKETS,
    CARD_NOT_PRESENT_RATES,
    CARD_PRESENT_RATES,
    CURRENT_RATE_MARKUP,
    DEFAULT_CARD_MIX,
    DEFAULT_CATEGORY,
    DUAL_PRICING_SERVICE_FEE,
    FLAT_RATE,
    INTERCHANGE_PLUS_FACTOR,
    PER_TRANSACTION_FEES,
    RATE_SOURCES,
    bucket_shares,
    is_card_present_industry,
    normalize_merchant_type,
)
from proposal_engine.core.logging import get_logger, log_with_context
from proposal_engine.core.plugin_manager import ProposalPlugin
from proposal_engine.core.schemas_context import (
    AuditEntry,
    CardBucket,
    Citation,
    DualPricingSavings,
    InterchangeCalculation,
    PricingProgramLiteral,
    ProposalContext,
    ProposalStage,
    SavingsProjection,
)

logger = get_logger(__name__)

DEFAULT_MONTHLY_VOLUME = 50_000.0
DEFAULT_AVERAGE_TICKET = 50.0


def round_half_up(value: float, places: int = 0) -> float:
    """Round halves toward +infinity, the way receipts and rate sheets do."""
    scale = 10 ** places
    return math.floor(value * scale + 0.5) / scale


def _round2(value: float) -> float:
    return round_half_up(value, 2)


def _round_count(value: float) -> int:
    return int(round_half_up(value))


def calculate_interchange(
    monthly_volume: float,
    average_ticket: float,
    category: str = DEFAULT_CATEGORY,
    is_card_present: bool = True,
    card_mix: dict[str, float] | None = None,
) -> InterchangeCalculation:
    """
    Estimate wholesale processing cost for a merchant.

    Args:
        monthly_volume: Monthly card volume in dollars (> 0)
        average_ticket: Average transaction size in dollars (> 0)
        category: Merchant category or free-text industry
        is_card_present: Use card-present rates when True
        card_mix: Network share of volume (defaults to DEFAULT_CARD_MIX)

    Returns:
        InterchangeCalculation with per-bucket breakdown and dual pricing projection

    Raises:
        ValueError: If volume or ticket is not positive
    """
    if monthly_volume <= 0:
        raise ValueError("monthly_volume must be positive")
    if average_ticket <= 0:
        raise ValueError("average_ticket must be positive")

    card_mix = card_mix or DEFAULT_CARD_MIX
    shares = bucket_shares(card_mix)
    normalized_category = normalize_merchant_type(category)
    category_rates = AVERAGE_RATES_BY_CATEGORY[normalized_category]
    rates = CARD_PRESENT_RATES if is_card_present else CARD_NOT_PRESENT_RATES

    transaction_count = _round_count(monthly_volume / average_ticket)

    breakdown: dict[str, CardBucket] = {}
    interchange_cost = 0.0
    assessment_cost = 0.0
    for bucket in CARD_BUCKETS:
        volume = monthly_volume * shares[bucket]
        transactions = _round_count(transaction_count * shares[bucket])
        cost = volume * rates[bucket] / 100 + transactions * PER_TRANSACTION_FEES[bucket]

        interchange_cost += cost
        assessment_cost += volume * ASSESSMENT_RATES[bucket]
        breakdown[bucket] = CardBucket(
            volume=_round2(volume),
            transactions=transactions,
            cost=_round2(cost),
            rate=rates[bucket],
        )

    total_wholesale_cost = interchange_cost + assessment_cost
    effective_rate = total_wholesale_cost / monthly_volume * 100

    service_fee_collected = monthly_volume * DUAL_PRICING_SERVICE_FEE / 100
    net_cost_to_merchant = max(0.0, total_wholesale_cost - service_fee_collected)
    annual_savings = (total_wholesale_cost - net_cost_to_merchant) * 12

    return InterchangeCalculation(
        monthly_volume=monthly_volume,
        average_ticket=average_ticket,
        transaction_count=transaction_count,
        card_mix=dict(card_mix),
        category=normalized_category,
        is_card_present=is_card_present,
        category_benchmark_rate=(
            category_rates.card_present if is_card_present else category_rates.card_not_present
        ),
        interchange_cost=_round2(interchange_cost),
        assessment_cost=_round2(assessment_cost),
        total_wholesale_cost=_round2(total_wholesale_cost),
        effective_rate=_round2(effective_rate),
        breakdown=breakdown,
        dual_pricing_savings=DualPricingSavings(
            service_fee_collected=_round2(service_fee_collected),
            net_cost_to_merchant=_round2(net_cost_to_merchant),
            annual_savings=_round2(annual_savings),
        ),
    )


def calculate_savings(
    current_effective_rate: float,
    monthly_volume: float,
    proposed_program: PricingProgramLiteral,
) -> SavingsProjection:
    """
    Compare the merchant's current cost with a proposed program.

    Args:
        current_effective_rate: Current effective rate in percent
        monthly_volume: Monthly card volume in dollars
        proposed_program: dual_pricing, interchange_plus or flat_rate

    Returns:
        SavingsProjection with monthly/annual savings and the proposed rate

    Raises:
        ValueError: If the program is unknown
    """
    current_monthly_cost = monthly_volume * current_effective_rate / 100

    if proposed_program == "dual_pricing":
        proposed_rate = 0.0
        proposed_monthly_cost = 0.0
    elif proposed_program == "interchange_plus":
        proposed_rate = current_effective_rate * INTERCHANGE_PLUS_FACTOR
        proposed_monthly_cost = monthly_volume * proposed_rate / 100
    elif proposed_program == "flat_rate":
        proposed_rate = FLAT_RATE
        proposed_monthly_cost = monthly_volume * proposed_rate / 100
    else:
        raise ValueError(f"Unknown pricing program: {proposed_program}")

    monthly_savings = current_monthly_cost - proposed_monthly_cost

    return SavingsProjection(
        program=proposed_program,
        current_effective_rate=current_effective_rate,
        current_monthly_cost=_round2(current_monthly_cost),
        proposed_rate=_round2(proposed_rate),
        proposed_monthly_cost=_round2(proposed_monthly_cost),
        monthly_savings=_round2(monthly_savings),
        annual_savings=_round2(monthly_savings * 12),
    )


class InterchangeCalculatorPlugin(ProposalPlugin):
    id = "interchange-calculator"
    name = "Interchange Calculator"
    version = "1.0.0"
    stage = ProposalStage.ENRICH
    enabled = True
    priority = 25

    async def run(self, context: ProposalContext) -> ProposalContext:
        merchant = context.merchant_data

        monthly_volume = merchant.monthly_volume
        if not monthly_volume:
            monthly_volume = DEFAULT_MONTHLY_VOLUME
            context.add_warning(
                f"Monthly volume not provided; using default of ${DEFAULT_MONTHLY_VOLUME:,.0f}"
            )

        average_ticket = merchant.average_ticket
        if not average_ticket:
            average_ticket = DEFAULT_AVERAGE_TICKET
            context.add_warning(
                f"Average ticket not provided; using default of ${DEFAULT_AVERAGE_TICKET:,.0f}"
            )

        category = normalize_merchant_type(merchant.industry)
        is_card_present = is_card_present_industry(merchant.industry)
        calculation = calculate_interchange(monthly_volume, average_ticket, category, is_card_present)

        current_rates = context.pricing_data.current_rates
        if current_rates and current_rates.qualified_rate:
            current_rate = current_rates.qualified_rate
        else:
            current_rate = _round2(calculation.effective_rate + CURRENT_RATE_MARKUP)
        savings = calculate_savings(current_rate, monthly_volume, "dual_pricing")

        pricing = context.pricing_data
        pricing.proposed_program = "dual_pricing"
        pricing.projected_savings = savings.annual_savings
        pricing.interchange_calculation = calculation
        pricing.savings_analysis = savings
        pricing.citations = [
            Citation(source=source, reference=reference, confidence=0.95)
            for source, reference in RATE_SOURCES
        ]

        context.add_citation(Citation(
            source="Interchange Rate Tables",
            reference="; ".join(f"{source} ({reference})" for source, reference in RATE_SOURCES),
            confidence=0.9,
        ))
        context.add_citation(Citation(
            source="Merchant Category",
            reference=f"Calculated from {category} category rates"
                      f" ({'card present' if is_card_present else 'card not present'})",
            confidence=0.9 if merchant.industry else 0.6,
        ))

        context.add_audit(AuditEntry(
            stage=ProposalStage.ENRICH,
            plugin=self.id,
            action="Interchange costs calculated",
            success=True,
            metadata={
                "monthly_volume": monthly_volume,
                "average_ticket": average_ticket,
                "category": category,
                "effective_rate": calculation.effective_rate,
                "projected_annual_savings": savings.annual_savings,
            },
        ))

        log_with_context(
            logger, logging.INFO, "Interchange costs calculated",
            proposal_id=context.id, stage=self.stage, plugin=self.id,
            effective_rate=calculation.effective_rate, annual_savings=savings.annual_savings,
        )
        return context
