#!/usr/bin/env python3
"""Main settlement engine configuration"""
import os
from dataclasses import dataclass, field

from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .service_config import ServiceConfig
from .pricing_config import PricingConfig
from .risk_config import RiskConfig
from .payment_config import PaymentConfig

def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class SettlementConfig:
    """Settlement engine configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    services: ServiceConfig = field(default_factory=ServiceConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    payments: PaymentConfig = field(default_factory=PaymentConfig)

    @classmethod
    def from_env(cls) -> 'SettlementConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            services=ServiceConfig.from_env(),
            pricing=PricingConfig.from_env(),
            risk=RiskConfig.from_env(),
            payments=PaymentConfig.from_env(),
        )
