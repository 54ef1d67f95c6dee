"""
Risk Evaluator

Scores a prospective payment from buyer history, request context and the
transaction's shape. The result is a pure function of the inputs and the
policy: account age is measured against the transaction's own timestamp.

Each factor group produces a value in [0, 1] (the strongest signal in the
group wins); the weighted sum is scaled to 0-100. The evaluator only gates
the payment step and never touches stock or price.
"""

import logging
import math
import re
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from core.config import RiskConfig

from .models import (
    BuyerProfile,
    RequestContext,
    RiskAction,
    RiskAssessment,
    RiskLevel,
    TransactionProfile,
)

logger = logging.getLogger(__name__)

AUTOMATION_AGENT = re.compile(r"headless|phantom|selenium|puppeteer|playwright|webdriver|curl|python-requests|bot", re.I)

FactorResult = Tuple[float, List[str]]


class RiskEvaluator:
    """Weighted multi-factor fraud scoring"""

    def __init__(self, policy: Optional[RiskConfig] = None):
        self.policy = policy or RiskConfig()

    def evaluate(
        self,
        transaction: TransactionProfile,
        buyer: BuyerProfile,
        context: RequestContext,
    ) -> RiskAssessment:
        blacklisted = self._blacklist_hits(buyer, context)
        if blacklisted:
            logger.warning(f"Blacklist hit for order {transaction.order_id}: {blacklisted}")
            return RiskAssessment(
                risk_score=100,
                risk_level=RiskLevel.CRITICAL,
                action=RiskAction.BLOCK,
                risk_factors=blacklisted,
                evaluated_at=transaction.occurred_at,
            )

        groups: Dict[str, FactorResult] = {
            "new_account": self._account_age(transaction, buyer),
            "account_without_orders": self._order_history(buyer),
            "unusual_amount": self._amount(transaction, buyer),
            "mismatched_location": self._location(transaction, context),
            "repeated_attempts": self._retries(transaction),
            "known_fraud_patterns": self._fraud_patterns(transaction, buyer),
            "suspicious_device": self._device(context),
        }

        weighted = 0.0
        factors: List[str] = []
        for name, (value, labels) in groups.items():
            if value > 0:
                weighted += self.policy.weights.get(name, 0.0) * value
                factors.extend(labels)

        score = min(100, math.floor(weighted * 100 + 0.5))
        level, action = self._classify(score)

        logger.debug(f"Risk for order {transaction.order_id}: score={score} level={level.value} action={action.value}")
        return RiskAssessment(
            risk_score=score,
            risk_level=level,
            action=action,
            risk_factors=factors,
            evaluated_at=transaction.occurred_at,
        )

    def _classify(self, score: int) -> Tuple[RiskLevel, RiskAction]:
        if score >= self.policy.high_threshold:
            return RiskLevel.HIGH, RiskAction.BLOCK
        if score >= self.policy.medium_threshold:
            return RiskLevel.MEDIUM, RiskAction.CHALLENGE
        if score >= self.policy.low_threshold:
            return RiskLevel.LOW, RiskAction.ALLOW
        return RiskLevel.MINIMAL, RiskAction.ALLOW

    def _blacklist_hits(self, buyer: BuyerProfile, context: RequestContext) -> List[str]:
        hits = []
        if buyer.email and buyer.email.lower() in self.policy.blacklisted_emails:
            hits.append("blacklisted_email")
        if context.ip_address and context.ip_address.lower() in self.policy.blacklisted_ips:
            hits.append("blacklisted_ip")
        if context.device_id and context.device_id.lower() in self.policy.blacklisted_devices:
            hits.append("blacklisted_device")
        return hits

    # ====================
    # Factor groups
    # ====================

    @staticmethod
    def _account_age(transaction: TransactionProfile, buyer: BuyerProfile) -> FactorResult:
        if buyer.account_created_at is None:
            return 1.0, ["unknown_account_age"]
        age = transaction.occurred_at - buyer.account_created_at
        if age < timedelta(days=1):
            return 1.0, ["new_account"]
        if age < timedelta(days=7):
            return 0.7, ["new_account"]
        if age < timedelta(days=30):
            return 0.3, ["recent_account"]
        return 0.0, []

    @staticmethod
    def _order_history(buyer: BuyerProfile) -> FactorResult:
        if buyer.order_count == 0:
            return 0.8, ["no_order_history"]
        if buyer.order_count < 3:
            return 0.3, ["limited_order_history"]
        return 0.0, []

    def _amount(self, transaction: TransactionProfile, buyer: BuyerProfile) -> FactorResult:
        value, labels = 0.0, []
        amount = transaction.amount
        average = buyer.average_order_amount
        if average and average > 0 and amount > average * 3:
            value, labels = max(value, 0.6), labels + ["amount_above_buyer_average"]
        if buyer.order_count == 0 and amount > self.policy.first_order_high_value:
            value, labels = max(value, 0.6), labels + ["high_value_first_order"]
        if amount > self.policy.absolute_high_value:
            value, labels = max(value, 0.5), labels + ["high_amount"]
        return value, labels

    def _location(self, transaction: TransactionProfile, context: RequestContext) -> FactorResult:
        value, labels = 0.0, []
        billing = transaction.billing_address
        shipping = transaction.shipping_address

        declared = billing or shipping
        if context.ip_country and declared and context.ip_country.upper() != declared.country.upper():
            value, labels = max(value, 0.8), labels + ["ip_country_mismatch"]
        if billing and shipping and billing.fingerprint() != shipping.fingerprint():
            value, labels = max(value, 0.7), labels + ["billing_shipping_mismatch"]

        countries = {a.country.lower() for a in (billing, shipping) if a}
        if context.ip_country:
            countries.add(context.ip_country.lower())
        if countries & self.policy.high_risk_countries:
            value, labels = max(value, 0.6), labels + ["high_risk_country"]
        return value, labels

    @staticmethod
    def _retries(transaction: TransactionProfile) -> FactorResult:
        if transaction.retry_count > 2:
            return min(1.0, 0.6 + (transaction.retry_count - 2) * 0.1), ["repeated_attempts"]
        return 0.0, []

    def _fraud_patterns(self, transaction: TransactionProfile, buyer: BuyerProfile) -> FactorResult:
        value, labels = 0.0, []
        if (
            transaction.cardholder_name
            and buyer.full_name
            and transaction.cardholder_name.strip().lower() != buyer.full_name.strip().lower()
        ):
            value, labels = max(value, 0.9), labels + ["cardholder_name_mismatch"]
        if buyer.email and "@" in buyer.email:
            domain = buyer.email.rsplit("@", 1)[1].lower()
            if domain in self.policy.disposable_email_domains:
                value, labels = max(value, 0.7), labels + ["disposable_email"]
        amount = transaction.amount
        if amount > 500 and amount % Decimal(100) == 0:
            value, labels = max(value, 0.4), labels + ["round_amount"]
        return value, labels

    @staticmethod
    def _device(context: RequestContext) -> FactorResult:
        value, labels = 0.0, []
        if not context.device_id or not context.session_id:
            value, labels = max(value, 0.5), labels + ["missing_device_context"]
        agent = context.user_agent or ""
        if len(agent) < 10:
            value, labels = max(value, 0.7), labels + ["suspicious_user_agent"]
        elif AUTOMATION_AGENT.search(agent):
            value, labels = max(value, 0.9), labels + ["automated_client"]
        return value, labels
