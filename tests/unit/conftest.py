"""
Unit Test Layer Configuration

Pure functions only: pricing, risk scoring, the order state machine and
small core helpers.

Usage:
    pytest tests/unit -v
    pytest tests/unit -m unit -v
"""
import pytest

from core.config import PricingConfig, RiskConfig
from microservices.risk_service.risk_evaluator import RiskEvaluator


@pytest.fixture
def pricing_policy() -> PricingConfig:
    """Default fees: 10 per customization option, 5 handling, 8% tax"""
    return PricingConfig()


@pytest.fixture
def risk_policy() -> RiskConfig:
    return RiskConfig()


@pytest.fixture
def evaluator(risk_policy) -> RiskEvaluator:
    return RiskEvaluator(risk_policy)
