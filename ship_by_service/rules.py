"""
rules.py - Lead-Time Rule Matching
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .models import AdoptedRule, ErrorCode, Err, Ok, Rule, RuleTargetType, ShopSetting
from .prefectures import normalize_prefecture
from .validators import normalize_key, parse_positive_int

logger = logging.getLogger(__name__)


def parse_target_ids(value: Optional[str]) -> List[str]:
    """
    Decode a rule target into product ids

    Product group rules store their ids as a JSON list; older rules
    store a single product id.
    """
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        parsed = None
    if isinstance(parsed, list):
        return [str(v) for v in parsed if v is not None and str(v)]
    return [str(value)]


def collect_unique_product_ids(rules: Iterable[Rule]) -> List[str]:
    """Unique product ids over all product rules, first-seen order"""
    seen: Dict[str, None] = {}
    for rule in rules:
        if rule.target_type != RuleTargetType.PRODUCT:
            continue
        for product_id in parse_target_ids(rule.target_id):
            seen.setdefault(product_id, None)
    return list(seen)


@dataclass(frozen=True)
class MatchContext:
    """What the order resolved to before rule evaluation"""
    shipping_id: str
    product_ids: List[str] = field(default_factory=list)
    prefecture: Optional[str] = None
    shop_setting: Optional[ShopSetting] = None


Tier = Callable[[Rule, MatchContext], bool]


class RuleMatcher:
    """
    Picks the governing lead time from the configured rules

    Subclasses define TIERS, most specific first. The first tier with at
    least one matching rule wins; the adopted days are the maximum days in
    that tier and every rule sharing that maximum is reported.
    """

    TIERS: List[Tier] = []

    def pick(self, rules: Iterable[Rule], context: MatchContext) -> Union[Ok[AdoptedRule], Err]:
        """
        Select the adopted lead time

        Args:
            rules: All configured rules of the shop
            context: Resolved shipping identifier, products, prefecture

        Returns:
            Ok with AdoptedRule(days, rule_ids), or Err(no_rule)
        """
        rules = list(rules)

        for level, tier in enumerate(self.TIERS, start=1):
            candidates = [rule for rule in rules if tier(rule, context)]
            if not candidates:
                continue

            adopt_days = max(rule.days for rule in candidates)
            rule_ids = [rule.id for rule in candidates if rule.days == adopt_days]

            logger.debug(
                f"Tier {level} matched {len(candidates)} rule(s): "
                f"adopt_days={adopt_days}, rule_ids={rule_ids}"
            )
            return Ok(AdoptedRule(days=adopt_days, rule_ids=rule_ids))

        logger.debug(f"No rule matched shipping_id={context.shipping_id}, products={context.product_ids}")
        return Err(ErrorCode.NO_RULE, "no matching rule found")

    @staticmethod
    def matches_product(rule: Rule, context: MatchContext) -> bool:
        target_ids = parse_target_ids(rule.target_id)
        return any(product_id in target_ids for product_id in context.product_ids)

    @staticmethod
    def for_setting(shop_setting: ShopSetting) -> "RuleMatcher":
        """Select the matcher variant for the configuration mode in use"""
        if shop_setting.uses_shipping_methods:
            return MethodRuleMatcher()
        return RateRuleMatcher()


class RateRuleMatcher(RuleMatcher):
    """Rules keyed on shipping rates (targets: all, product)"""

    @staticmethod
    def rate_ids(rule: Rule) -> List[str]:
        return [normalize_key(str(rate_id)) for rate_id in rule.shipping_rate_ids]

    @staticmethod
    def has_rate_constraint(rule: Rule) -> bool:
        return len(RateRuleMatcher.rate_ids(rule)) > 0

    @staticmethod
    def matches_rate(rule: Rule, context: MatchContext) -> bool:
        rate_ids = RateRuleMatcher.rate_ids(rule)
        if not rate_ids:
            return True
        return normalize_key(context.shipping_id) in rate_ids

    TIERS: List[Tier] = [
        # product x shipping rate
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.PRODUCT
            and RateRuleMatcher.has_rate_constraint(rule)
            and RuleMatcher.matches_product(rule, ctx)
            and RateRuleMatcher.matches_rate(rule, ctx)
        ),
        # product only
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.PRODUCT
            and not RateRuleMatcher.has_rate_constraint(rule)
            and RuleMatcher.matches_product(rule, ctx)
        ),
        # all products x shipping rate
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.ALL
            and RateRuleMatcher.has_rate_constraint(rule)
            and RateRuleMatcher.matches_rate(rule, ctx)
        ),
        # all products
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.ALL
            and not RateRuleMatcher.has_rate_constraint(rule)
        ),
    ]


class MethodRuleMatcher(RuleMatcher):
    """Rules keyed on shipping methods and prefectures (targets: product, shipping_method, all_products)"""

    @staticmethod
    def applies(rule: Rule, context: MatchContext) -> bool:
        """Enabled, and the prefecture is listed when the rule lists any"""
        if not rule.enabled:
            return False
        if not rule.prefectures:
            return True
        listed = {normalize_prefecture(p) or str(p).strip().lower() for p in rule.prefectures}
        return context.prefecture in listed

    @staticmethod
    def matches_method(rule: Rule, context: MatchContext) -> bool:
        if not rule.target_id or normalize_key(rule.target_id) != normalize_key(context.shipping_id):
            return False
        setting = context.shop_setting
        if setting is None:
            return True
        method = setting.shipping_method_settings.get(context.shipping_id)
        return method is not None and method.enabled

    TIERS: List[Tier] = [
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.PRODUCT
            and MethodRuleMatcher.applies(rule, ctx)
            and RuleMatcher.matches_product(rule, ctx)
        ),
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.SHIPPING_METHOD
            and MethodRuleMatcher.applies(rule, ctx)
            and MethodRuleMatcher.matches_method(rule, ctx)
        ),
        lambda rule, ctx: (
            rule.target_type == RuleTargetType.ALL_PRODUCTS
            and MethodRuleMatcher.applies(rule, ctx)
        ),
    ]


# RULE LOADING

def _coerce_target_type(value: Any) -> Optional[RuleTargetType]:
    if isinstance(value, RuleTargetType):
        return value
    try:
        return RuleTargetType(str(value).strip().lower())
    except ValueError:
        return None


def build_rule(raw: Dict[str, Any]) -> Optional[Rule]:
    """
    Build a Rule from a stored record (camelCase or snake_case keys)

    Records without an id, with an unknown target type or with
    non-positive days are dropped.
    """
    rule_id = raw.get("id")
    target_type = _coerce_target_type(raw.get("targetType", raw.get("target_type")))
    days = parse_positive_int(raw.get("days"))

    if rule_id is None or target_type is None or days is None:
        logger.warning(f"Skipping invalid rule record: {raw}")
        return None

    target_id = raw.get("targetId", raw.get("target_id"))
    if isinstance(target_id, list):
        target_id = json.dumps([str(v) for v in target_id])

    rate_ids = raw.get("shippingRateIds", raw.get("shipping_rate_ids")) or []
    prefectures = raw.get("prefectures") or []
    enabled = raw.get("enabled", True)

    return Rule(
        id=str(rule_id),
        target_type=target_type,
        days=days,
        target_id=str(target_id) if target_id is not None else None,
        shipping_rate_ids=[str(v) for v in rate_ids] if isinstance(rate_ids, list) else [],
        prefectures=[str(v) for v in prefectures] if isinstance(prefectures, list) else [],
        enabled=enabled is not False,
    )


def extract_rules(links: Iterable[Dict[str, Any]]) -> List[Rule]:
    """
    Collapse rule <-> shipping-rate link records into rules

    Each link is {"shippingRateId": ..., "rule": {...}}; a rule linked to
    several rates appears once with every linked rate id, in link order.
    """
    records: Dict[str, Dict[str, Any]] = {}

    for link in links:
        rule = link.get("rule") or {}
        rule_id = rule.get("id")
        if rule_id is None:
            continue
        rate_id = link.get("shippingRateId", link.get("shipping_rate_id"))

        record = records.get(str(rule_id))
        if record is None:
            record = dict(rule)
            record["shippingRateIds"] = []
            records[str(rule_id)] = record

        if rate_id is not None and str(rate_id) not in record["shippingRateIds"]:
            record["shippingRateIds"].append(str(rate_id))

    return [rule for rule in (build_rule(record) for record in records.values()) if rule]
