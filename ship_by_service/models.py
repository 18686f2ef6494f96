"""
models.py - Data Models and Enums
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorCode(Enum):
    """Error codes for calculation results and API responses"""
    MISSING_SETTING = "missing_setting"
    DELIVERY_VALUE_NOT_FOUND = "delivery_value_not_found"
    INVALID_DELIVERY_FORMAT = "invalid_delivery_format"
    SHIPPING_RATE_NOT_FOUND = "shipping_rate_not_found"
    SHIPPING_RATE_NOT_CONFIGURED = "shipping_rate_not_configured"
    SHIPPING_METHOD_NOT_FOUND = "shipping_method_not_found"
    SHIPPING_METHOD_NOT_CONFIGURED = "shipping_method_not_configured"
    SHIPPING_METHOD_DISABLED = "shipping_method_disabled"
    PREFECTURE_MISSING = "prefecture_missing"
    NO_RULE = "no_rule"
    HOLIDAY_NEVER_RESOLVES = "holiday_never_resolves"

    # Service level
    INVALID_INPUT = "invalid_input"
    CONFIG_ERROR = "config_error"
    INTERNAL_ERROR = "internal_error"


class DeliverySource(Enum):
    """Where the requested delivery date is read from on an order"""
    METAFIELD = "metafield"
    ATTRIBUTES = "attributes"


class RuleTargetType(Enum):
    """Rule targets for both shipping-rate and shipping-method configurations"""
    ALL = "all"
    PRODUCT = "product"
    ALL_PRODUCTS = "all_products"
    SHIPPING_METHOD = "shipping_method"


# ORDER

@dataclass(frozen=True)
class Attribute:
    name: Optional[str]
    value: Any = None


@dataclass(frozen=True)
class Metafield:
    namespace: Optional[str]
    key: Optional[str]
    value: Any = None


@dataclass(frozen=True)
class ShippingLine:
    code: Optional[str] = None
    title: Optional[str] = None
    delivery_category: Optional[str] = None
    shipping_rate_handle: Optional[str] = None
    id: Optional[Union[str, int]] = None


@dataclass(frozen=True)
class LineItem:
    product_id: Optional[Union[str, int]] = None


@dataclass(frozen=True)
class ShippingAddress:
    province_code: Optional[str] = None
    province: Optional[str] = None


@dataclass(frozen=True)
class Order:
    """Order snapshot used for one calculation"""
    id: Optional[Union[str, int]] = None
    attributes: List[Attribute] = field(default_factory=list)
    metafields: List[Metafield] = field(default_factory=list)
    shipping_lines: List[ShippingLine] = field(default_factory=list)
    line_items: List[LineItem] = field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None

    def product_ids(self) -> List[str]:
        """Product ids of the line items, stringified, missing ids skipped"""
        return [
            str(item.product_id)
            for item in self.line_items
            if item.product_id is not None and str(item.product_id)
        ]


# SHOP CONFIGURATION

@dataclass(frozen=True)
class ShippingRate:
    shipping_rate_id: str
    handle: Optional[str] = None
    title: Optional[str] = None
    zone_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "shipping_rate_id": self.shipping_rate_id,
            "handle": self.handle,
            "title": self.title,
            "zone_name": self.zone_name,
        }


@dataclass(frozen=True)
class ShippingMethodSetting:
    title: Optional[str] = None
    enabled: bool = True


@dataclass(frozen=True)
class ShopSetting:
    """
    Shop level settings snapshot

    Either shipping_rates (rate based rules) or shipping_method_settings
    (method and prefecture based rules) is populated.
    """
    delivery_source: Optional[DeliverySource] = None
    delivery_key: Optional[str] = None
    delivery_format: Optional[str] = None
    default_lead_days: Optional[int] = None
    shipping_rates: List[ShippingRate] = field(default_factory=list)
    shipping_method_settings: Dict[str, ShippingMethodSetting] = field(default_factory=dict)

    @property
    def uses_shipping_methods(self) -> bool:
        return bool(self.shipping_method_settings)


@dataclass(frozen=True)
class Rule:
    """Lead-time rule, read-only for the engine"""
    id: str
    target_type: RuleTargetType
    days: int
    target_id: Optional[str] = None
    shipping_rate_ids: List[str] = field(default_factory=list)
    prefectures: List[str] = field(default_factory=list)
    enabled: bool = True


@dataclass(frozen=True)
class HolidayConfig:
    """Single-date holidays (ISO strings) and weekly holidays (sun..sat)"""
    holidays: FrozenSet[str] = frozenset()
    weekly_holidays: FrozenSet[str] = frozenset()

    @classmethod
    def from_raw(cls, holidays: Any = None, weekly_holidays: Any = None) -> "HolidayConfig":
        """
        Build a holiday configuration from loosely typed stored values

        Args:
            holidays: List of ISO date strings (anything else is ignored)
            weekly_holidays: List of weekday codes, case-insensitive

        Returns:
            HolidayConfig snapshot
        """
        holiday_list = holidays if isinstance(holidays, (list, tuple, set, frozenset)) else []
        weekly_list = weekly_holidays if isinstance(weekly_holidays, (list, tuple, set, frozenset)) else []
        return cls(
            holidays=frozenset(str(day).strip() for day in holiday_list),
            weekly_holidays=frozenset(str(day).strip().lower() for day in weekly_list),
        )


# RESULTS

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Err:
    error: ErrorCode
    message: str
    ok: bool = field(default=False, init=False)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "error": self.message,
            "error_code": self.error.value,
        }


@dataclass(frozen=True)
class AdoptedRule:
    days: int
    rule_ids: List[str]


@dataclass(frozen=True)
class ShipByResult:
    """Ship-by calculation result"""
    ship_by: date
    delivery_date: date
    adopt_days: int
    shipping_id: str
    matched_rule_ids: List[str]
    adjusted_from: date

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "ship_by": self.ship_by.isoformat(),
            "delivery_date": self.delivery_date.isoformat(),
            "adopt_days": self.adopt_days,
            "shipping_id": self.shipping_id,
            "matched_rule_ids": list(self.matched_rule_ids),
            "adjusted_from": self.adjusted_from.isoformat(),
        }


CalculationResult = Union[Ok[ShipByResult], Err]
