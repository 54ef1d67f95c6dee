#!/usr/bin/env python3
"""Risk scoring configuration

Weights and thresholds are a tunable policy. Each weight multiplies a
factor in [0, 1]; the weighted sum is scaled to 0-100 and clamped.
"""
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _set(val: str) -> FrozenSet[str]:
    return frozenset(v.strip().lower() for v in val.split(",") if v.strip())


DEFAULT_WEIGHTS: Dict[str, float] = {
    "new_account": 0.20,
    "account_without_orders": 0.10,
    "unusual_amount": 0.15,
    "mismatched_location": 0.25,
    "repeated_attempts": 0.15,
    "known_fraud_patterns": 0.30,
    "suspicious_device": 0.15,
}

DEFAULT_DISPOSABLE_DOMAINS = frozenset({
    "mailinator.com", "tempmail.com", "guerrillamail.com",
    "10minutemail.com", "yopmail.com", "throwawaymail.com",
})


@dataclass
class RiskConfig:
    """Fraud scoring policy"""
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    # Thresholds on the 0-100 score
    low_threshold: int = 30
    medium_threshold: int = 60
    high_threshold: int = 80

    first_order_high_value: Decimal = Decimal("500")
    absolute_high_value: Decimal = Decimal("5000")

    high_risk_countries: FrozenSet[str] = frozenset()
    disposable_email_domains: FrozenSet[str] = DEFAULT_DISPOSABLE_DOMAINS

    blacklisted_emails: FrozenSet[str] = frozenset()
    blacklisted_ips: FrozenSet[str] = frozenset()
    blacklisted_devices: FrozenSet[str] = frozenset()

    @classmethod
    def from_env(cls) -> 'RiskConfig':
        """Load risk policy from environment variables"""
        weights = dict(DEFAULT_WEIGHTS)
        for name in weights:
            override = os.getenv(f"RISK_WEIGHT_{name.upper()}")
            if override:
                try:
                    weights[name] = float(override)
                except ValueError:
                    pass

        disposable = _set(os.getenv("RISK_DISPOSABLE_DOMAINS", ""))
        return cls(
            weights=weights,
            low_threshold=_int(os.getenv("RISK_LOW_THRESHOLD", "30"), 30),
            medium_threshold=_int(os.getenv("RISK_MEDIUM_THRESHOLD", "60"), 60),
            high_threshold=_int(os.getenv("RISK_HIGH_THRESHOLD", "80"), 80),
            first_order_high_value=Decimal(os.getenv("RISK_FIRST_ORDER_HIGH_VALUE", "500")),
            absolute_high_value=Decimal(os.getenv("RISK_ABSOLUTE_HIGH_VALUE", "5000")),
            high_risk_countries=_set(os.getenv("RISK_HIGH_RISK_COUNTRIES", "")),
            disposable_email_domains=disposable or DEFAULT_DISPOSABLE_DOMAINS,
            blacklisted_emails=_set(os.getenv("RISK_BLACKLISTED_EMAILS", "")),
            blacklisted_ips=_set(os.getenv("RISK_BLACKLISTED_IPS", "")),
            blacklisted_devices=_set(os.getenv("RISK_BLACKLISTED_DEVICES", "")),
        )
