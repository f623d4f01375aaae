from decimal import Decimal

from price_checker.models import GatewayItem, ProductSnapshot, Source
from price_checker.reconcile import (
    ResultMatcher,
    normalize_product_id,
    normalize_url,
    parse_gateway_items,
)


def snapshot(product_id="B000000001", url="https://www.amazon.com.mx/dp/B000000001"):
    return ProductSnapshot(
        tracked_product_id="1",
        external_product_id=product_id,
        source=Source.AMAZON,
        reference_url=url,
    )


class TestParseGatewayItems:
    def test_coerces_string_prices_and_int_ids(self):
        items = parse_gateway_items([
            {"id": 12345, "price": "1,299.50", "url": "https://x/1"},
            {"id": "MLM1", "price": "$ 89.90"},
            {"id": "MLM2", "price": 15},
        ])
        assert [i.id for i in items] == ["12345", "MLM1", "MLM2"]
        assert [i.price for i in items] == [Decimal("1299.50"), Decimal("89.90"), Decimal("15")]

    def test_drops_invalid_entries(self, caplog):
        items = parse_gateway_items([
            {"id": "a"},
            {"id": "b", "price": None},
            {"id": "c", "price": 0},
            {"id": "d", "price": "N/A"},
            "not-an-object",
            {"id": "e", "price": "10"},
        ])
        assert [i.id for i in items] == ["e"]
        assert "descartado" in caplog.text

    def test_ignores_unknown_fields_and_bad_quantities(self):
        item = parse_gateway_items([
            {"id": "x", "price": 1, "rating": 4.5, "available_quantity": "muchos"}
        ])[0]
        assert item.available_quantity is None

    def test_empty_or_none(self):
        assert parse_gateway_items([]) == []
        assert parse_gateway_items(None) == []


class TestNormalization:
    def test_amazon_prefix(self):
        assert normalize_product_id("AMZN-B0123") == "B0123"
        assert normalize_product_id(" MLM123 ") == "MLM123"
        assert normalize_product_id("") is None

    def test_url(self):
        assert normalize_url("HTTPS://WWW.Amazon.com.mx/dp/B01/#reviews") == "https://www.amazon.com.mx/dp/B01"
        assert normalize_url("https://a.com/p?x=1") == "https://a.com/p?x=1"
        assert normalize_url("   ") is None


class TestResultMatcher:
    def test_id_takes_precedence_over_url(self):
        by_id = GatewayItem(id="B000000001", url="https://other/item", price=Decimal("10"))
        by_url = GatewayItem(url="https://www.amazon.com.mx/dp/B000000001", price=Decimal("99"))
        matcher = ResultMatcher([by_url, by_id])

        assert matcher.match(snapshot()).price == Decimal("10")

    def test_falls_back_to_url(self):
        item = GatewayItem(id="unrelated", url="https://www.amazon.com.mx/dp/B000000001/", price=Decimal("7"))
        assert ResultMatcher([item]).match(snapshot()) is item

    def test_store_prefix_matches_bare_asin(self):
        item = GatewayItem(id="B000000001", price=Decimal("7"))
        assert ResultMatcher([item]).match(snapshot(product_id="AMZN-B000000001", url=None)) is item

    def test_no_match(self):
        item = GatewayItem(id="other", url="https://elsewhere", price=Decimal("1"))
        assert ResultMatcher([item]).match(snapshot()) is None

    def test_first_duplicate_wins(self):
        first = GatewayItem(id="B000000001", price=Decimal("1"))
        second = GatewayItem(id="B000000001", price=Decimal("2"))
        assert ResultMatcher([first, second]).match(snapshot()) is first
