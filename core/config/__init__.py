#!/usr/bin/env python3
"""Modular configuration system for the settlement engine

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- service_config: Peer marketplace services (listing catalog, accounts)
- logging_config: Logging configuration
- pricing_config: Fixed fees and tax rate used by the pricing engine
- risk_config: Fraud scoring weights, thresholds and blacklists
- payment_config: Gateway credentials and payment ledger settings
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .service_config import ServiceConfig
from .pricing_config import PricingConfig
from .risk_config import RiskConfig
from .payment_config import PaymentConfig
from .settlement_config import SettlementConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, ".env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = SettlementConfig.from_env()

def get_settings() -> SettlementConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> SettlementConfig:
    """Reload settings from environment"""
    global settings
    settings = SettlementConfig.from_env()
    return settings

__all__ = [
    # Main config
    'SettlementConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'InfraConfig',
    'ServiceConfig',
    'PricingConfig',
    'RiskConfig',
    'PaymentConfig',
]
