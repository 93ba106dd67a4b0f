"""Pytest configuration and fixtures."""

import os

import pytest

from proposal_engine.core.config import get_settings
from proposal_engine.core.schemas_context import (
    MerchantData,
    ProposalContext,
    ProposalRequest,
    SalespersonInfo,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["PROPOSAL_ENGINE_ENV"] = "test"
    # No real provider credentials or log level override in tests; routers get fake adapters
    for key in ("ANTHROPIC_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY", "LOG_LEVEL"):
        os.environ.pop(key, None)
    os.environ["HALT_ON_VALIDATION_ERRORS"] = "false"
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def salesperson() -> SalespersonInfo:
    return SalespersonInfo(name="Dana Rep", title="Account Executive")


@pytest.fixture
def merchant() -> MerchantData:
    return MerchantData(
        business_name="Joe's Pizza",
        owner_name="Joe Romano",
        email="joe@joespizza.com",
        phone="(555) 123-4567",
        industry="restaurant",
        monthly_volume=50_000,
        average_ticket=50,
    )


@pytest.fixture
def proposal_request(merchant, salesperson) -> ProposalRequest:
    return ProposalRequest(
        user_id="user-1",
        organization_id=7,
        merchant_data=merchant,
        salesperson=salesperson,
    )


@pytest.fixture
def context(merchant, salesperson) -> ProposalContext:
    return ProposalContext(
        user_id="user-1",
        organization_id=7,
        merchant_data=merchant,
        salesperson=salesperson,
    )
