"""Fixed interchange, assessment and card-mix tables.

Blended rates per card-network bucket, taken from the published Visa
(October 2025) and Mastercard (April 2025) U.S. schedules plus Discover and
Amex OptBlue equivalents. Rates are percentages of volume.
"""

from dataclasses import dataclass

# =============================================================================
# Card mix
# =============================================================================

CARD_BUCKETS: tuple[str, ...] = ("visa", "mastercard", "discover", "amex", "debit")

# Fraction of volume per network; regulated debit is folded into the debit bucket
DEFAULT_CARD_MIX: dict[str, float] = {
    "visa": 0.35,
    "mastercard": 0.25,
    "discover": 0.08,
    "amex": 0.12,
    "debit": 0.15,
    "debit_regulated": 0.05,
}


def bucket_shares(card_mix: dict[str, float]) -> dict[str, float]:
    """Collapse a card mix into the five cost buckets."""
    return {
        "visa": card_mix.get("visa", 0.0),
        "mastercard": card_mix.get("mastercard", 0.0),
        "discover": card_mix.get("discover", 0.0),
        "amex": card_mix.get("amex", 0.0),
        "debit": card_mix.get("debit", 0.0) + card_mix.get("debit_regulated", 0.0),
    }


# =============================================================================
# Interchange
# =============================================================================

CARD_PRESENT_RATES: dict[str, float] = {
    "visa": 1.65,
    "mastercard": 1.58,
    "discover": 1.56,
    "amex": 1.90,
    "debit": 0.80,
}

CARD_NOT_PRESENT_RATES: dict[str, float] = {
    "visa": 1.80,
    "mastercard": 1.95,
    "discover": 1.81,
    "amex": 2.20,
    "debit": 1.65,
}

PER_TRANSACTION_FEES: dict[str, float] = {
    "visa": 0.10,
    "mastercard": 0.10,
    "discover": 0.10,
    "amex": 0.10,
    "debit": 0.15,
}

# =============================================================================
# Network assessments (fraction of volume)
# =============================================================================

ASSESSMENT_RATES: dict[str, float] = {
    "visa": 0.0013,
    "mastercard": 0.0013,
    "discover": 0.0013,
    "amex": 0.0015,  # OptBlue
    "debit": 0.0,
}

# =============================================================================
# Pricing programs
# =============================================================================

DUAL_PRICING_SERVICE_FEE = 3.50  # percent collected from the cardholder
INTERCHANGE_PLUS_FACTOR = 0.85  # proposed rate as a fraction of current
FLAT_RATE = 2.50  # percent
CURRENT_RATE_MARKUP = 0.50  # assumed markup over wholesale when no statement rate is known

DUAL_PRICING_COMPLIANCE = [
    "Clear disclosure of pricing (cash vs card)",
    "Posted signage required",
    "Receipt must show both prices",
    "Cannot exceed card brand surcharge limit (4% max)",
]

# =============================================================================
# Merchant categories
# =============================================================================

DEFAULT_CATEGORY = "retail"


@dataclass(frozen=True)
class CategoryRates:
    card_present: float
    card_not_present: float


AVERAGE_RATES_BY_CATEGORY: dict[str, CategoryRates] = {
    "retail": CategoryRates(1.75, 2.10),
    "restaurant": CategoryRates(1.55, 2.00),
    "qsr": CategoryRates(1.45, 1.90),
    "supermarket": CategoryRates(1.25, 1.80),
    "ecommerce": CategoryRates(1.80, 2.20),
    "service": CategoryRates(1.70, 2.05),
    "lodging": CategoryRates(1.65, 2.00),
    "healthcare": CategoryRates(1.80, 2.15),
    "b2b": CategoryRates(2.50, 2.70),
    "government": CategoryRates(1.55, 1.85),
    "education": CategoryRates(1.45, 1.75),
}

# First match wins; order matters ("food service" is a restaurant)
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("restaurant", ("restaurant", "food")),
    ("supermarket", ("supermarket", "grocery")),
    ("ecommerce", ("ecommerce", "online")),
    ("lodging", ("hotel", "lodging")),
    ("healthcare", ("health", "medical")),
    ("service", ("service",)),
]

CARD_NOT_PRESENT_KEYWORDS: tuple[str, ...] = ("ecommerce", "online")

RATE_SOURCES: list[tuple[str, str]] = [
    ("Visa USA Interchange Reimbursement Fees", "October 2025"),
    ("Mastercard U.S. Region Interchange Programs", "April 2025"),
]


def normalize_merchant_type(industry: str | None) -> str:
    """
    Map free-text industry to a merchant category.

    Args:
        industry: Free text such as "Family Restaurant" or "online store"

    Returns:
        A key of AVERAGE_RATES_BY_CATEGORY, defaulting to "retail"
    """
    text = (industry or "").strip().lower()
    if not text:
        return DEFAULT_CATEGORY
    if text in AVERAGE_RATES_BY_CATEGORY:
        return text

    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category

    return DEFAULT_CATEGORY


def is_card_present_industry(industry: str | None) -> bool:
    """Card-present unless the industry text says the business sells online."""
    text = (industry or "").lower()
    return not any(keyword in text for keyword in CARD_NOT_PRESENT_KEYWORDS)
