"""Tests for proposal_engine.plugins.field_validation."""

import pytest

from proposal_engine.core.schemas_context import MerchantData, ProposalStage
from proposal_engine.plugins.field_validation import FieldValidationPlugin, validate_merchant_fields


def _by_field(merchant: MerchantData) -> dict:
    return {v.field: v for v in validate_merchant_fields(merchant)}


class TestValidateMerchantFields:
    def test_complete_merchant_is_valid(self, merchant):
        results = _by_field(merchant)

        assert set(results) == {"business_name", "owner_name", "email", "phone"}
        assert all(v.is_valid for v in results.values())

    def test_optional_fields_skipped_when_absent(self):
        results = _by_field(MerchantData(business_name="Acme"))
        assert set(results) == {"business_name", "owner_name"}

    def test_blank_business_name(self):
        result = _by_field(MerchantData(business_name="   "))["business_name"]

        assert result.is_valid is False
        assert result.confidence == 0.0
        assert result.message == "Business name is required"

    @pytest.mark.parametrize(
        "email,valid",
        [("a@b.co", True), ("joe@joespizza.com", True), ("not-an-email", False), ("a@b", False), ("a b@c.com", False)],
    )
    def test_email(self, email, valid):
        assert _by_field(MerchantData(business_name="X", email=email))["email"].is_valid is valid

    @pytest.mark.parametrize(
        "phone,valid",
        [("(555) 123-4567", True), ("+1 555 123 4567", True), ("555-1234", False)],
    )
    def test_phone(self, phone, valid):
        assert _by_field(MerchantData(business_name="X", phone=phone))["phone"].is_valid is valid

    @pytest.mark.parametrize(
        "website,valid",
        [("https://joespizza.com", True), ("joespizza.com", True), ("http://x", True), ("not a site", False)],
    )
    def test_website(self, website, valid):
        assert _by_field(MerchantData(business_name="X", website=website))["website"].is_valid is valid


class TestFieldValidationPlugin:
    @pytest.mark.asyncio
    async def test_valid_merchant_adds_no_errors(self, context):
        result = await FieldValidationPlugin().run(context)

        assert result.errors == []
        assert result.warnings == []
        entry = result.audit[-1]
        assert entry.stage == ProposalStage.VALIDATE
        assert entry.success is True
        assert entry.metadata["fields_invalid"] == 0

    @pytest.mark.asyncio
    async def test_missing_business_name_is_error_not_exception(self, context):
        context.merchant_data = MerchantData(business_name="")

        result = await FieldValidationPlugin().run(context)

        assert result.errors == ["Business name is required"]
        assert result.audit[-1].success is False

    @pytest.mark.asyncio
    async def test_recommended_fields_become_warnings(self, context):
        context.merchant_data = MerchantData(
            business_name="Acme", email="bad-email", phone="123", website="nope nope",
        )

        result = await FieldValidationPlugin().run(context)

        assert result.errors == []
        assert result.warnings == [
            "Owner name recommended for personalization",
            "Invalid email format",
            "Phone number appears incomplete",
            "website could not be validated",
        ]
        assert result.audit[-1].success is True
        assert result.audit[-1].metadata["fields_invalid"] == 4
