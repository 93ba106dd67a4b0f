"""Field validation plugin (validate stage, no AI).

Business name is the only required field; a missing one is recorded as an
error. Everything else is recommended: problems are recorded as warnings.
Nothing here raises, so the pipeline always continues past validation unless
the orchestrator is configured to halt.
"""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any

from proposal_engine.core.logging import get_logger, log_with_context
from proposal_engine.core.plugin_manager import ProposalPlugin
from proposal_engine.core.schemas_context import AuditEntry, MerchantData, ProposalContext, ProposalStage

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_SCHEME_RE = re.compile(r"^https?://")
BARE_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{0,61}[a-zA-Z0-9]\.[a-zA-Z]{2,}")

REQUIRED_FIELDS = ("business_name",)


@dataclass
class ValidationResult:
    field: str
    value: Any
    is_valid: bool
    confidence: float
    message: str | None = None


def validate_merchant_fields(merchant: MerchantData) -> list[ValidationResult]:
    """Check each merchant field; optional fields are checked only when present."""
    validations: list[ValidationResult] = []

    business_name = (merchant.business_name or "").strip()
    validations.append(ValidationResult(
        field="business_name",
        value=merchant.business_name,
        is_valid=bool(business_name),
        confidence=1.0 if business_name else 0.0,
        message=None if business_name else "Business name is required",
    ))

    validations.append(ValidationResult(
        field="owner_name",
        value=merchant.owner_name,
        is_valid=bool(merchant.owner_name),
        confidence=0.9 if merchant.owner_name else 0.3,
        message=None if merchant.owner_name else "Owner name recommended for personalization",
    ))

    if merchant.email:
        email_valid = bool(EMAIL_RE.match(merchant.email))
        validations.append(ValidationResult(
            field="email",
            value=merchant.email,
            is_valid=email_valid,
            confidence=1.0 if email_valid else 0.2,
            message=None if email_valid else "Invalid email format",
        ))

    if merchant.phone:
        digits = re.sub(r"\D", "", merchant.phone)
        phone_valid = len(digits) >= 10
        validations.append(ValidationResult(
            field="phone",
            value=merchant.phone,
            is_valid=phone_valid,
            confidence=1.0 if phone_valid else 0.4,
            message=None if phone_valid else "Phone number appears incomplete",
        ))

    if merchant.website:
        website_valid = bool(
            URL_SCHEME_RE.match(merchant.website) or BARE_DOMAIN_RE.match(merchant.website)
        )
        validations.append(ValidationResult(
            field="website",
            value=merchant.website,
            is_valid=website_valid,
            confidence=0.9 if website_valid else 0.5,
        ))

    return validations


class FieldValidationPlugin(ProposalPlugin):
    id = "field-validation"
    name = "Field Validation"
    version = "1.0.0"
    stage = ProposalStage.VALIDATE
    enabled = True
    priority = 10

    async def run(self, context: ProposalContext) -> ProposalContext:
        validations = validate_merchant_fields(context.merchant_data)

        failed_required = [
            v for v in validations if v.field in REQUIRED_FIELDS and not v.is_valid
        ]
        for v in failed_required:
            context.add_error(v.message or f"{v.field} is invalid")

        # confidence 0 means "required and missing", already an error
        for v in validations:
            if not v.is_valid and v.confidence > 0:
                context.add_warning(v.message or f"{v.field} could not be validated")

        overall_confidence = sum(v.confidence for v in validations) / len(validations)
        invalid_count = sum(1 for v in validations if not v.is_valid)

        context.add_audit(AuditEntry(
            stage=ProposalStage.VALIDATE,
            plugin=self.id,
            action="Field validation complete",
            success=not failed_required,
            metadata={
                "validations": [asdict(v) for v in validations],
                "overall_confidence": round(overall_confidence, 3),
                "fields_validated": len(validations),
                "fields_invalid": invalid_count,
            },
        ))

        log_with_context(
            logger, logging.INFO, "Merchant fields validated",
            proposal_id=context.id, stage=self.stage, plugin=self.id,
            fields_validated=len(validations), invalid=invalid_count, confidence=round(overall_confidence, 3),
        )
        return context
