"""
Inventory Service Events Module
"""

from .models import StockThresholdEvent
from .publishers import publish_threshold_crossing

__all__ = [
    "StockThresholdEvent",
    "publish_threshold_crossing",
]
