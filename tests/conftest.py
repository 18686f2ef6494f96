import pytest

from ship_by_service.models import (
    DeliverySource,
    HolidayConfig,
    LineItem,
    Metafield,
    Order,
    ShippingAddress,
    ShippingLine,
    ShippingMethodSetting,
    ShippingRate,
    ShopSetting,
)


def build_order(delivery="2025-05-10", code="yamato_cool", line_id="sr_yamato_cool",
              product_ids=(), province_code=None, order_id=1):
    metafields = []
    if delivery is not None:
        metafields.append(Metafield("shipping", "requested_date", delivery))
    return Order(
        id=order_id,
        metafields=metafields,
        shipping_lines=[ShippingLine(code=code, id=line_id)],
        line_items=[LineItem(product_id=pid) for pid in product_ids],
        shipping_address=ShippingAddress(province_code=province_code) if province_code else None,
    )


@pytest.fixture
def make_order():
    return build_order


@pytest.fixture
def rate_setting():
    return ShopSetting(
        delivery_source=DeliverySource.METAFIELD,
        delivery_key="shipping.requested_date",
        delivery_format="YYYY-MM-DD",
        shipping_rates=[
            ShippingRate("sr_yamato_cool", "yamato_cool", "Yamato Cool"),
            ShippingRate("sr_sagawa_regular", "sagawa_regular", "Sagawa Regular"),
        ],
    )


@pytest.fixture
def method_setting():
    return ShopSetting(
        delivery_source=DeliverySource.METAFIELD,
        delivery_key="shipping.requested_date",
        delivery_format="YYYY-MM-DD",
        shipping_method_settings={
            "yamato_cool": ShippingMethodSetting("Yamato Cool", True),
            "sagawa_regular": ShippingMethodSetting("Sagawa Regular", False),
        },
    )


@pytest.fixture
def no_holidays():
    return HolidayConfig()
