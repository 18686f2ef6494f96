"""
calculator.py - Ship-By Date Calculations
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from .holidays import HolidayCalculator
from .models import (
    AdoptedRule,
    CalculationResult,
    ErrorCode,
    Err,
    HolidayConfig,
    Ok,
    Order,
    Rule,
    ShipByResult,
    ShopSetting,
)
from .prefectures import resolve_prefecture
from .rules import MatchContext, RuleMatcher
from .shipping import ShippingIdentifierResolver
from .validators import DeliveryDateValidator

logger = logging.getLogger(__name__)


class ShipByCalculator:
    """Computes the ship-by deadline of an order"""

    @staticmethod
    def subtract_lead_time(delivery_date: date, days: int) -> Optional[date]:
        """Delivery date minus lead time, None if it leaves the calendar range"""
        try:
            return delivery_date - timedelta(days=days)
        except OverflowError:
            return None

    @staticmethod
    def calculate_ship_by(
        order: Order,
        rules: Iterable[Rule],
        shop_setting: ShopSetting,
        holiday_config: Optional[HolidayConfig] = None
    ) -> CalculationResult:
        """
        Calculate the latest date the order may leave the warehouse

        Steps: parse delivery date, resolve shipping identifier, resolve
        prefecture (shipping method mode only), match rules (or fall back
        to the default lead days), subtract lead time, walk back over
        holidays. The first failing step is returned as is.

        Args:
            order: Order snapshot
            rules: Configured rules of the shop
            shop_setting: Shop settings snapshot
            holiday_config: Holiday configuration snapshot

        Returns:
            Ok(ShipByResult) or Err
        """
        delivery_result = DeliveryDateValidator.parse_delivery_date(order, shop_setting)
        if not delivery_result.ok:
            return delivery_result
        delivery_date = delivery_result.value

        shipping_result = ShippingIdentifierResolver.detect(order, shop_setting)
        if not shipping_result.ok:
            return shipping_result
        shipping_id = shipping_result.value

        prefecture = None
        if shop_setting.uses_shipping_methods:
            prefecture = resolve_prefecture(order.shipping_address)
            if prefecture is None:
                return Err(ErrorCode.PREFECTURE_MISSING, "shipping prefecture not found on order")

        context = MatchContext(
            shipping_id=shipping_id,
            product_ids=order.product_ids(),
            prefecture=prefecture,
            shop_setting=shop_setting,
        )
        rule_result = RuleMatcher.for_setting(shop_setting).pick(rules, context)

        if rule_result.ok:
            adopted = rule_result.value
        else:
            fallback_days = shop_setting.default_lead_days
            if rule_result.error != ErrorCode.NO_RULE or not fallback_days or fallback_days <= 0:
                return rule_result
            logger.debug(f"Order {order.id}: no rule matched, using default lead days {fallback_days}")
            adopted = AdoptedRule(days=fallback_days, rule_ids=[])

        base_ship_by = ShipByCalculator.subtract_lead_time(delivery_date, adopted.days)
        if base_ship_by is None:
            return Err(ErrorCode.INVALID_DELIVERY_FORMAT, "delivery date is out of range")

        adjusted_result = HolidayCalculator.adjust_for_holidays(base_ship_by, holiday_config)
        if not adjusted_result.ok:
            return adjusted_result

        result = ShipByResult(
            ship_by=adjusted_result.value,
            delivery_date=delivery_date,
            adopt_days=adopted.days,
            shipping_id=shipping_id,
            matched_rule_ids=list(adopted.rule_ids),
            adjusted_from=base_ship_by,
        )

        logger.info(
            f"Ship-by calculation complete: order={order.id}, {delivery_date} - {adopted.days} days "
            f"= {base_ship_by} -> {result.ship_by} ({shipping_id})"
        )
        return Ok(result)


calculate_ship_by = ShipByCalculator.calculate_ship_by
