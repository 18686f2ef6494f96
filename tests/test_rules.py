"""
Unit tests for lead-time rule matching.

Tests verify:
- Tier ordering (specific tiers win even with lower days)
- Tie-break completeness within the winning tier
- Shipping method / prefecture variant
- Rule loading from stored records
"""
from ship_by_service.models import ErrorCode, Rule, RuleTargetType, ShippingMethodSetting, ShopSetting
from ship_by_service.rules import (
    MatchContext,
    MethodRuleMatcher,
    RateRuleMatcher,
    RuleMatcher,
    build_rule,
    collect_unique_product_ids,
    extract_rules,
    parse_target_ids,
)

ALL = RuleTargetType.ALL
PRODUCT = RuleTargetType.PRODUCT


def rate_context(shipping_id="sr_yamato_cool", products=("111",)):
    return MatchContext(shipping_id=shipping_id, product_ids=list(products))


class TestRateTiers:
    """Rate based matching."""

    def test_product_with_rate_beats_higher_general_rules(self):
        rules = [
            Rule("all-open", ALL, 9),
            Rule("product-only", PRODUCT, 8, target_id="111"),
            Rule("product-with-rate", PRODUCT, 1, target_id="111", shipping_rate_ids=["sr_yamato_cool"]),
        ]
        result = RateRuleMatcher().pick(rules, rate_context())
        assert result.ok
        assert result.value.days == 1
        assert result.value.rule_ids == ["product-with-rate"]

    def test_product_only_when_rate_does_not_match(self):
        rules = [
            Rule("product-other-rate", PRODUCT, 5, target_id="111", shipping_rate_ids=["sr_other"]),
            Rule("product-only", PRODUCT, 2, target_id="111"),
            Rule("all-with-rate", ALL, 7, shipping_rate_ids=["sr_yamato_cool"]),
        ]
        result = RateRuleMatcher().pick(rules, rate_context())
        assert result.value.rule_ids == ["product-only"]

    def test_all_with_rate_before_all_open(self):
        rules = [
            Rule("all-open", ALL, 5),
            Rule("all-with-rate", ALL, 2, shipping_rate_ids=["SR_YAMATO_COOL"]),
        ]
        result = RateRuleMatcher().pick(rules, rate_context(products=("999",)))
        assert result.value.days == 2
        assert result.value.rule_ids == ["all-with-rate"]

    def test_all_open_is_last_resort(self):
        rules = [
            Rule("all-other-rate", ALL, 5, shipping_rate_ids=["sr_other"]),
            Rule("all-open", ALL, 4),
        ]
        result = RateRuleMatcher().pick(rules, rate_context(products=()))
        assert result.value.rule_ids == ["all-open"]

    def test_no_rule(self):
        rules = [Rule("different-rate", ALL, 1, shipping_rate_ids=["sr_other"])]
        result = RateRuleMatcher().pick(rules, rate_context())
        assert not result.ok
        assert result.error == ErrorCode.NO_RULE

    def test_product_group_target(self):
        rules = [Rule("group", PRODUCT, 3, target_id='["100", "111", "122"]')]
        result = RateRuleMatcher().pick(rules, rate_context(products=("555", "111")))
        assert result.value.rule_ids == ["group"]

    def test_maximum_days_adopted_within_tier(self):
        rules = [
            Rule("p-a", PRODUCT, 2, target_id="111"),
            Rule("p-b", PRODUCT, 4, target_id="222"),
        ]
        result = RateRuleMatcher().pick(rules, rate_context(products=("111", "222")))
        assert result.value.days == 4
        assert result.value.rule_ids == ["p-b"]


class TestTieBreak:
    """Every rule sharing the adopted days is reported."""

    def test_ties_are_all_reported(self):
        rules = [
            Rule("candidate-a", PRODUCT, 3, target_id="111", shipping_rate_ids=["sr_yamato_cool"]),
            Rule("candidate-b", PRODUCT, 3, target_id="111", shipping_rate_ids=["sr_yamato_cool"]),
            Rule("lower", PRODUCT, 1, target_id="111", shipping_rate_ids=["sr_yamato_cool"]),
            Rule("other-tier", ALL, 3),
        ]
        result = RateRuleMatcher().pick(rules, rate_context())
        assert result.value.days == 3
        assert set(result.value.rule_ids) == {"candidate-a", "candidate-b"}

    def test_input_order_preserved(self):
        rules = [
            Rule("z", ALL, 2),
            Rule("a", ALL, 2),
        ]
        result = RateRuleMatcher().pick(rules, rate_context())
        assert result.value.rule_ids == ["z", "a"]


class TestMethodTiers:
    """Shipping method and prefecture based matching."""

    setting = ShopSetting(shipping_method_settings={
        "yamato_cool": ShippingMethodSetting("Yamato Cool", True),
        "sagawa_regular": ShippingMethodSetting("Sagawa Regular", False),
    })

    def context(self, shipping_id="yamato_cool", products=("111",), prefecture="hokkaido"):
        return MatchContext(
            shipping_id=shipping_id,
            product_ids=list(products),
            prefecture=prefecture,
            shop_setting=self.setting,
        )

    def test_shipping_method_beats_all_products(self):
        rules = [
            Rule("all-products", RuleTargetType.ALL_PRODUCTS, 2, prefectures=["hokkaido"]),
            Rule("shipping-specific", RuleTargetType.SHIPPING_METHOD, 3,
                 target_id="yamato_cool", prefectures=["hokkaido"]),
        ]
        result = MethodRuleMatcher().pick(rules, self.context())
        assert result.value.days == 3
        assert result.value.rule_ids == ["shipping-specific"]

    def test_product_beats_shipping_method(self):
        rules = [
            Rule("method", RuleTargetType.SHIPPING_METHOD, 5, target_id="yamato_cool"),
            Rule("product", PRODUCT, 1, target_id='["111"]'),
        ]
        result = MethodRuleMatcher().pick(rules, self.context())
        assert result.value.rule_ids == ["product"]

    def test_prefecture_must_be_listed(self):
        rules = [Rule("kantou", RuleTargetType.ALL_PRODUCTS, 1, prefectures=["tokyo", "kanagawa"])]
        result = MethodRuleMatcher().pick(rules, self.context(prefecture="okinawa"))
        assert result.error == ErrorCode.NO_RULE

    def test_prefecture_list_accepts_codes_and_names(self):
        rules = [Rule("tokyo", RuleTargetType.ALL_PRODUCTS, 1, prefectures=["JP-13"])]
        result = MethodRuleMatcher().pick(rules, self.context(prefecture="tokyo"))
        assert result.value.rule_ids == ["tokyo"]

    def test_rule_without_prefectures_applies_everywhere(self):
        rules = [Rule("nationwide", RuleTargetType.ALL_PRODUCTS, 2)]
        result = MethodRuleMatcher().pick(rules, self.context(prefecture="okinawa"))
        assert result.value.rule_ids == ["nationwide"]

    def test_disabled_rule_is_ignored(self):
        rules = [
            Rule("disabled", RuleTargetType.SHIPPING_METHOD, 9, target_id="yamato_cool", enabled=False),
            Rule("base", RuleTargetType.ALL_PRODUCTS, 1),
        ]
        result = MethodRuleMatcher().pick(rules, self.context())
        assert result.value.rule_ids == ["base"]

    def test_shipping_method_rule_requires_enabled_method(self):
        rules = [
            Rule("sagawa", RuleTargetType.SHIPPING_METHOD, 4, target_id="sagawa_regular"),
            Rule("base", RuleTargetType.ALL_PRODUCTS, 1),
        ]
        result = MethodRuleMatcher().pick(rules, self.context(shipping_id="sagawa_regular"))
        assert result.value.rule_ids == ["base"]

    def test_for_setting_selects_variant(self):
        assert isinstance(RuleMatcher.for_setting(self.setting), MethodRuleMatcher)
        assert isinstance(RuleMatcher.for_setting(ShopSetting()), RateRuleMatcher)


class TestRuleLoading:
    """Stored rule records and link deduplication."""

    def test_parse_target_ids(self):
        assert parse_target_ids(None) == []
        assert parse_target_ids("111") == ["111"]
        assert parse_target_ids('["1", 2]') == ["1", "2"]
        assert parse_target_ids("not json") == ["not json"]

    def test_collect_unique_product_ids(self):
        rules = [
            Rule("a", PRODUCT, 1, target_id='["1", "2"]'),
            Rule("b", PRODUCT, 1, target_id='["2", "3"]'),
            Rule("c", ALL, 1),
        ]
        assert collect_unique_product_ids(rules) == ["1", "2", "3"]

    def test_build_rule_camel_case(self):
        rule = build_rule({
            "id": "r1",
            "targetType": "product",
            "targetId": ["111", "222"],
            "shippingRateIds": ["sr_1"],
            "days": "3",
        })
        assert rule.target_type == PRODUCT
        assert parse_target_ids(rule.target_id) == ["111", "222"]
        assert rule.shipping_rate_ids == ["sr_1"]
        assert rule.days == 3
        assert rule.enabled is True

    def test_build_rule_rejects_invalid_records(self):
        assert build_rule({"id": "r1", "target_type": "nope", "days": 1}) is None
        assert build_rule({"id": "r1", "target_type": "all", "days": 0}) is None
        assert build_rule({"target_type": "all", "days": 1}) is None

    def test_extract_rules_merges_links(self):
        links = [
            {"shippingRateId": "sr_a", "rule": {"id": "r1", "targetType": "all", "targetId": None, "days": 2}},
            {"shippingRateId": "sr_b", "rule": {"id": "r1", "targetType": "all", "targetId": None, "days": 2}},
            {"shippingRateId": "sr_a", "rule": {"id": "r1", "targetType": "all", "targetId": None, "days": 2}},
            {"shippingRateId": "sr_a", "rule": {"id": "r2", "targetType": "product", "targetId": "9", "days": 1}},
        ]
        rules = extract_rules(links)
        assert [r.id for r in rules] == ["r1", "r2"]
        assert rules[0].shipping_rate_ids == ["sr_a", "sr_b"]
        assert rules[1].shipping_rate_ids == ["sr_a"]
