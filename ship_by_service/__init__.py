"""
Ship-by deadline calculation for e-commerce orders
"""

from .calculator import ShipByCalculator, calculate_ship_by
from .models import ErrorCode, HolidayConfig, Order, Rule, ShipByResult, ShopSetting

__all__ = [
    "ShipByCalculator",
    "calculate_ship_by",
    "ErrorCode",
    "HolidayConfig",
    "Order",
    "Rule",
    "ShipByResult",
    "ShopSetting",
]
