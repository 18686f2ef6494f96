"""
adapters.py - Payload Normalization for Orders, Settings and Holidays
"""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from .models import (
    Attribute,
    DeliverySource,
    HolidayConfig,
    LineItem,
    Metafield,
    Order,
    ShippingAddress,
    ShippingLine,
    ShippingMethodSetting,
    ShopSetting,
)
from .shipping import parse_shipping_rates
from .validators import parse_positive_int

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"^\d+$")


def _first(obj: Dict[str, Any], *keys: str) -> Any:
    """Value of the first key present (webhook snake_case vs API camelCase)"""
    for key in keys:
        if key in obj and obj[key] is not None:
            return obj[key]
    return None


def _dicts(value: Any) -> List[Dict[str, Any]]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def parse_order_id(value: Any) -> Optional[Union[int, str]]:
    """Numeric order id or digit string, None otherwise"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _DIGITS.match(value):
        return value
    return None


def coerce_order(payload: Any) -> Order:
    """
    Normalize an order webhook / API payload into an Order

    attributes, note_attributes and noteAttributes are flattened into one
    attribute list; missing arrays default to empty.

    Args:
        payload: Raw order payload

    Returns:
        Order snapshot
    """
    obj = payload if isinstance(payload, dict) else {}

    attributes = []
    for field_name in ("attributes", "note_attributes", "noteAttributes"):
        for item in _dicts(obj.get(field_name)):
            attributes.append(Attribute(
                name=_first(item, "name", "key"),
                value=item.get("value"),
            ))

    metafields = [
        Metafield(namespace=item.get("namespace"), key=item.get("key"), value=item.get("value"))
        for item in _dicts(obj.get("metafields"))
    ]

    shipping_lines = [
        ShippingLine(
            code=_first(item, "code"),
            title=_first(item, "title"),
            delivery_category=_first(item, "delivery_category", "deliveryCategory"),
            shipping_rate_handle=_first(item, "shipping_rate_handle", "shippingRateHandle"),
            id=_first(item, "id"),
        )
        for item in _dicts(_first(obj, "shipping_lines", "shippingLines"))
    ]

    line_items = [
        LineItem(product_id=_first(item, "product_id", "productId"))
        for item in _dicts(_first(obj, "line_items", "lineItems"))
    ]

    address = _first(obj, "shipping_address", "shippingAddress")
    shipping_address = None
    if isinstance(address, dict):
        shipping_address = ShippingAddress(
            province_code=_first(address, "province_code", "provinceCode"),
            province=_first(address, "province"),
        )

    return Order(
        id=obj.get("id"),
        attributes=attributes,
        metafields=metafields,
        shipping_lines=shipping_lines,
        line_items=line_items,
        shipping_address=shipping_address,
    )


def _coerce_source(value: Any) -> Optional[DeliverySource]:
    if isinstance(value, DeliverySource):
        return value
    if not value:
        return None
    try:
        return DeliverySource(str(value).strip().lower())
    except ValueError:
        logger.warning(f"Unknown delivery source: {value}")
        return None


def parse_shipping_methods(value: Any) -> Dict[str, ShippingMethodSetting]:
    """Normalize a {method_key: {title, enabled}} mapping"""
    if not isinstance(value, dict):
        return {}

    methods = {}
    for key, item in value.items():
        if not key:
            continue
        item = item if isinstance(item, dict) else {}
        methods[str(key)] = ShippingMethodSetting(
            title=item.get("title") or str(key),
            enabled=item.get("enabled", True) is not False,
        )
    return methods


def extract_shop_setting(raw: Optional[Dict[str, Any]]) -> ShopSetting:
    """
    Build a ShopSetting snapshot from a stored settings record

    Keys may be camelCase (deliverySource) or snake_case (delivery_source).
    """
    raw = raw or {}
    return ShopSetting(
        delivery_source=_coerce_source(_first(raw, "deliverySource", "delivery_source")),
        delivery_key=_first(raw, "deliveryKey", "delivery_key"),
        delivery_format=_first(raw, "deliveryFormat", "delivery_format"),
        default_lead_days=parse_positive_int(_first(raw, "defaultLeadDays", "default_lead_days")),
        shipping_rates=parse_shipping_rates(_first(raw, "shippingRates", "shipping_rates")),
        shipping_method_settings=parse_shipping_methods(
            _first(raw, "shippingMethodSettings", "shipping_method_settings", "shipping_methods")
        ),
    )


def extract_holiday(raw: Optional[Dict[str, Any]]) -> HolidayConfig:
    """Build a HolidayConfig snapshot, no record means no holidays"""
    raw = raw or {}
    return HolidayConfig.from_raw(
        holidays=raw.get("holidays"),
        weekly_holidays=_first(raw, "weeklyHolidays", "weekly_holidays"),
    )
