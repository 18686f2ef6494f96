"""
shipping.py - Shipping Rate / Method Identification
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from .models import ErrorCode, Err, Ok, Order, ShippingRate, ShopSetting
from .validators import normalize_key

logger = logging.getLogger(__name__)

# Candidate extractors, tried in priority order
CandidateExtractor = Callable[[Order], Iterable[str]]


def _shipping_line_values(order: Order) -> Iterator[str]:
    for line in order.shipping_lines:
        if line.shipping_rate_handle:
            yield line.shipping_rate_handle
        if line.code:
            yield line.code
        if line.delivery_category:
            yield line.delivery_category
        if line.title:
            yield line.title
        if line.id is not None:
            yield str(line.id)


def _metafield_values(order: Order) -> Iterator[str]:
    for metafield in order.metafields:
        if isinstance(metafield.value, str):
            yield metafield.value


def _attribute_values(order: Order) -> Iterator[str]:
    for attribute in order.attributes:
        if isinstance(attribute.value, str):
            yield attribute.value


CANDIDATE_EXTRACTORS: List[CandidateExtractor] = [
    _shipping_line_values,
    _metafield_values,
    _attribute_values,
]


def iter_candidates(order: Order) -> Iterator[str]:
    """Yield every candidate shipping identifier string found on the order"""
    for extractor in CANDIDATE_EXTRACTORS:
        for candidate in extractor(order):
            yield candidate


class ShippingIdentifierResolver:
    """Resolves the configured shipping rate or shipping method of an order"""

    @staticmethod
    def build_rate_lookup(shipping_rates: Iterable[ShippingRate]) -> Dict[str, str]:
        """
        Map normalized id, handle and title of each rate to its canonical id

        Args:
            shipping_rates: Configured shipping rates

        Returns:
            Dictionary of normalized key -> shipping_rate_id
        """
        lookup: Dict[str, str] = {}
        for rate in shipping_rates:
            for value in (rate.shipping_rate_id, rate.handle, rate.title):
                if value:
                    lookup[normalize_key(value)] = rate.shipping_rate_id
        return lookup

    @staticmethod
    def build_method_lookup(shop_setting: ShopSetting) -> Dict[str, str]:
        """Map normalized method key and title to the method key"""
        lookup: Dict[str, str] = {}
        for method_key, method in shop_setting.shipping_method_settings.items():
            for value in (method_key, method.title):
                if value:
                    lookup[normalize_key(value)] = method_key
        return lookup

    @staticmethod
    def _first_match(order: Order, lookup: Dict[str, str]) -> Optional[str]:
        for candidate in iter_candidates(order):
            canonical = lookup.get(normalize_key(candidate))
            if canonical:
                logger.debug(f"Order {order.id}: shipping candidate '{candidate}' -> '{canonical}'")
                return canonical
        return None

    @staticmethod
    def detect_shipping_rate(order: Order, shop_setting: ShopSetting) -> Union[Ok[str], Err]:
        """
        Determine which configured shipping rate the order used

        Returns:
            Ok with the canonical shipping_rate_id, or Err with
            shipping_rate_not_found / shipping_rate_not_configured
        """
        lookup = ShippingIdentifierResolver.build_rate_lookup(shop_setting.shipping_rates)

        matched = ShippingIdentifierResolver._first_match(order, lookup)
        if matched:
            return Ok(matched)

        if lookup:
            return Err(ErrorCode.SHIPPING_RATE_NOT_FOUND, "shipping rate not found on order")

        return Err(ErrorCode.SHIPPING_RATE_NOT_CONFIGURED, "no shipping rates are configured")

    @staticmethod
    def detect_shipping_method(order: Order, shop_setting: ShopSetting) -> Union[Ok[str], Err]:
        """
        Determine which configured shipping method the order used

        A matched method that is disabled in the settings is an error
        regardless of the configured rules.

        Returns:
            Ok with the method key, or Err with shipping_method_not_found,
            shipping_method_not_configured or shipping_method_disabled
        """
        lookup = ShippingIdentifierResolver.build_method_lookup(shop_setting)

        matched = ShippingIdentifierResolver._first_match(order, lookup)
        if matched:
            if not shop_setting.shipping_method_settings[matched].enabled:
                return Err(ErrorCode.SHIPPING_METHOD_DISABLED, f"shipping method {matched} is disabled")
            return Ok(matched)

        if lookup:
            return Err(ErrorCode.SHIPPING_METHOD_NOT_FOUND, "shipping method not found on order")

        return Err(ErrorCode.SHIPPING_METHOD_NOT_CONFIGURED, "no shipping methods are configured")

    @staticmethod
    def detect(order: Order, shop_setting: ShopSetting) -> Union[Ok[str], Err]:
        """Resolve the shipping identifier for whichever configuration mode is in use"""
        if shop_setting.uses_shipping_methods:
            return ShippingIdentifierResolver.detect_shipping_method(order, shop_setting)
        return ShippingIdentifierResolver.detect_shipping_rate(order, shop_setting)


# STORED RATE NORMALIZATION

def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def parse_shipping_rates(value: Any) -> List[ShippingRate]:
    """
    Normalize stored shipping rate entries

    Entries may use camelCase (shippingRateId, zoneName) or snake_case keys.
    The id falls back to the handle then the title; entries with none of
    them are dropped.
    """
    if not isinstance(value, list):
        return []

    rates = []
    for item in value:
        if not isinstance(item, dict):
            continue
        handle = _text(item.get("handle"))
        title = _text(item.get("title"))
        rate_id = _text(item.get("shippingRateId", item.get("shipping_rate_id"))) or handle or title
        if not rate_id:
            continue
        zone_name = _text(item.get("zoneName", item.get("zone_name")))
        rates.append(ShippingRate(
            shipping_rate_id=rate_id,
            handle=handle or rate_id,
            title=title or handle or rate_id,
            zone_name=zone_name,
        ))
    return rates


def normalize_rate(rate: Dict[str, Any], zone_name: Optional[str]) -> Optional[ShippingRate]:
    """Normalize one raw carrier rate (id, code, service_code, name)"""
    raw_id = rate.get("id")
    rate_id = (
        _text(raw_id) if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) else None
    ) or _text(rate.get("code")) or _text(rate.get("service_code")) or _text(rate.get("name"))

    handle = _text(rate.get("code")) or _text(rate.get("service_code")) or _text(rate.get("name")) or rate_id
    title = _text(rate.get("name")) or handle or rate_id

    if not rate_id and not handle:
        return None

    return ShippingRate(
        shipping_rate_id=rate_id or handle,
        handle=handle or rate_id,
        title=title,
        zone_name=_text(zone_name),
    )


def extract_rates(zones: Iterable[Dict[str, Any]]) -> List[ShippingRate]:
    """
    Flatten raw shipping zones into a deduplicated list of rates

    Zones without any rate are kept as a pseudo rate "zone:<id or name>"
    so that rules can still target them.
    """
    rates: Dict[str, ShippingRate] = {}

    for zone in zones:
        if not isinstance(zone, dict):
            continue
        zone_name = _text(zone.get("name"))
        candidates = []
        for field_name in ("shipping_rates", "price_based_shipping_rates", "weight_based_shipping_rates"):
            candidates.extend(item for item in zone.get(field_name) or [] if isinstance(item, dict))

        if not candidates:
            if not zone_name:
                continue
            zone_id = _text(zone.get("id"))
            pseudo_id = f"zone:{zone_id}" if zone_id else f"zone:{zone_name}"
            rates.setdefault(pseudo_id, ShippingRate(pseudo_id, zone_name, zone_name, zone_name))
            continue

        for raw in candidates:
            normalized = normalize_rate(raw, zone_name)
            if normalized:
                rates.setdefault(normalized.shipping_rate_id, normalized)

    logger.debug(f"Extracted {len(rates)} shipping rates")
    return list(rates.values())
