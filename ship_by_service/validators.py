"""
validators.py - Delivery Date Parsing and Input Normalization
"""

import logging
import math
import re
from datetime import date
from typing import Any, Optional, Union

from .models import DeliverySource, ErrorCode, Err, Ok, Order, ShopSetting

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "YYYY-MM-DD"

_TOKEN_PATTERNS = {
    "YYYY": r"(?P<year>[0-9]{4})",
    "MM": r"(?P<month>[0-9]{1,2})",
    "DD": r"(?P<day>[0-9]{1,2})",
}
_TOKEN_SPLIT = re.compile(r"(YYYY|MM|DD)")
_KEY_SEPARATORS = re.compile(r"[\s-]+")


def normalize_key(value: str) -> str:
    """Case-fold a lookup key: trim, lower-case, whitespace/hyphen runs to '_'"""
    return _KEY_SEPARATORS.sub("_", value.strip().lower())


def parse_positive_int(value: Any) -> Optional[int]:
    """
    Accept integers >= 1 only

    Args:
        value: Raw value (int or numeric string)

    Returns:
        Parsed integer, or None if not a positive integer
    """
    if isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


class DeliveryDateValidator:
    """Extracts and validates the requested delivery date of an order"""

    @staticmethod
    def build_format_pattern(template: str) -> re.Pattern:
        """
        Compile a date template into an anchored pattern

        Tokens YYYY, MM and DD become capture groups; every other
        character is matched literally. A token may only appear once.

        Args:
            template: Format template (e.g. "YYYY-MM-DD", "YYYYMMDD")

        Returns:
            Compiled regular expression
        """
        parts = []
        for piece in _TOKEN_SPLIT.split(template):
            if piece in _TOKEN_PATTERNS:
                parts.append(_TOKEN_PATTERNS[piece])
            elif piece:
                parts.append(re.escape(piece))
        return re.compile("^" + "".join(parts) + "$")

    @staticmethod
    def date_from_parts(year: int, month: int, day: int) -> Optional[date]:
        """Build a calendar date, None when the parts are not a real date"""
        try:
            return date(year, month, day)
        except ValueError:
            return None

    @staticmethod
    def parse_date_with_format(raw: str, template: str = DEFAULT_FORMAT) -> Optional[date]:
        """
        Parse a raw string against a format template

        Args:
            raw: Raw date string
            template: Format template

        Returns:
            Parsed date, or None if the string does not match or is not
            a valid calendar date (e.g. month 13, Feb 30)
        """
        try:
            pattern = DeliveryDateValidator.build_format_pattern(template)
        except re.error as e:
            logger.error(f"Invalid delivery format template '{template}': {str(e)}")
            return None

        match = pattern.match(raw.strip())
        if not match:
            return None

        groups = match.groupdict()
        if not all(groups.get(name) for name in ("year", "month", "day")):
            logger.debug(f"Format '{template}' does not define year, month and day")
            return None

        return DeliveryDateValidator.date_from_parts(
            int(groups["year"]), int(groups["month"]), int(groups["day"])
        )

    @staticmethod
    def format_date(value: date, template: str = DEFAULT_FORMAT) -> str:
        """Render a date through a format template (zero padded)"""
        table = {
            "YYYY": f"{value.year:04d}",
            "MM": f"{value.month:02d}",
            "DD": f"{value.day:02d}",
        }
        return "".join(table.get(piece, piece) for piece in _TOKEN_SPLIT.split(template))

    @staticmethod
    def _stringify(value: Any) -> Optional[str]:
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float) and math.isfinite(value):
            return str(int(value)) if value.is_integer() else str(value)
        return None

    @staticmethod
    def get_delivery_value(
        order: Order,
        source: DeliverySource,
        delivery_key: str
    ) -> Optional[str]:
        """
        Look up the raw delivery value on the order

        Args:
            order: Order snapshot
            source: Metafield or attributes
            delivery_key: "namespace.key" for metafields, attribute name otherwise

        Returns:
            Raw string value, or None if not present
        """
        if source == DeliverySource.METAFIELD:
            # Split on the first dot only; the key keeps any further dots
            namespace, _, key = delivery_key.partition(".")
            if not namespace or not key:
                logger.warning(f"Metafield delivery key must be 'namespace.key', got '{delivery_key}'")
                return None

            for metafield in order.metafields:
                if (
                    (metafield.namespace or "").strip() == namespace
                    and (metafield.key or "").strip() == key
                    and isinstance(metafield.value, str)
                ):
                    return metafield.value
            return None

        for attribute in order.attributes:
            if (attribute.name or "").strip() == delivery_key:
                return DeliveryDateValidator._stringify(attribute.value)
        return None

    @staticmethod
    def parse_delivery_date(order: Order, shop_setting: ShopSetting) -> Union[Ok[date], Err]:
        """
        Extract the requested delivery date from an order

        Args:
            order: Order snapshot
            shop_setting: Shop settings snapshot

        Returns:
            Ok with the delivery date, or Err with one of missing_setting,
            delivery_value_not_found, invalid_delivery_format
        """
        source = shop_setting.delivery_source
        key = (shop_setting.delivery_key or "").strip()
        template = shop_setting.delivery_format or DEFAULT_FORMAT

        if not source or not key:
            return Err(ErrorCode.MISSING_SETTING, "delivery source or key is not configured")

        raw_value = DeliveryDateValidator.get_delivery_value(order, source, key)
        if not raw_value:
            logger.debug(f"Order {order.id}: no delivery value for {source.value} '{key}'")
            return Err(ErrorCode.DELIVERY_VALUE_NOT_FOUND, "delivery date value not found on order")

        parsed = DeliveryDateValidator.parse_date_with_format(raw_value, template)
        if parsed is None:
            logger.debug(f"Order {order.id}: '{raw_value}' does not match '{template}'")
            return Err(ErrorCode.INVALID_DELIVERY_FORMAT, f"delivery date does not match format {template}")

        logger.debug(f"Order {order.id}: delivery date {parsed.isoformat()}")
        return Ok(parsed)
