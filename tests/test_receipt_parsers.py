from decimal import Decimal

import pytest

from receipt_validator.common.schemas.receipt_scanned import RetailerType
from receipt_validator.parsers.receipt_dispatcher import ReceiptDispatcher, dispatcher, parse_receipt
from receipt_validator.parsers.vendors import CostcoParser, GenericParser, TargetParser, WalmartParser

ITEM_TOKENS = ["GREAT VALUE", "SUGAR", "001234567890", "12.99", "BANANAS", "1.58"]


def test_walmart_stacked_item_round_trip() -> None:
    receipt = WalmartParser().parse(["GREAT VALUE", "SUGAR", "001234567890", "12.99"])

    assert len(receipt.items) == 1
    item = receipt.items[0]
    assert item.name == "GREAT VALUE SUGAR"
    assert item.price == Decimal("12.99")
    assert item.sku == "001234567890"
    assert receipt.store_name == "Walmart"
    assert receipt.retailer == RetailerType.WALMART


def test_end_to_end_walmart_text() -> None:
    receipt = parse_receipt(
        "WALMART\nGREAT VALUE MILK\n001234567890\n3.99\nTAX\n0.24\nTOTAL\n4.23",
        RetailerType.WALMART,
    )

    assert [(i.name, i.price, i.sku) for i in receipt.items] == [
        ("GREAT VALUE MILK", Decimal("3.99"), "001234567890"),
    ]
    assert receipt.total_amount == Decimal("4.23")
    assert receipt.raw_text.startswith("WALMART\nGREAT VALUE MILK")


@pytest.mark.parametrize("parser", [WalmartParser(), TargetParser(), CostcoParser(), GenericParser()])
def test_total_is_found_wherever_it_appears(parser) -> None:
    total_tokens = ["TOTAL", "$19.98"]
    streams = [
        total_tokens + ITEM_TOKENS,
        ITEM_TOKENS + total_tokens,
        ITEM_TOKENS[:4] + total_tokens + ITEM_TOKENS[4:],
    ]

    for tokens in streams:
        receipt = parser.parse(tokens)
        assert receipt.total_amount == Decimal("19.98")
        assert [item.price for item in receipt.items] == [Decimal("12.99"), Decimal("1.58")]


def test_empty_input_is_safe() -> None:
    receipt = parse_receipt([])

    assert receipt.items == []
    assert receipt.total_amount is None
    assert receipt.store_name is None
    assert receipt.retailer == RetailerType.UNKNOWN
    assert receipt.is_empty
    assert parse_receipt("").items == []


def test_walmart_slogan_and_register_lines_are_noise() -> None:
    tokens = [
        "Walmart Supercenter",
        "Save money.",
        "Live better.",
        "ST# 1234 OP# 00001 TE# 12 TR# 03456",
        "GREAT VALUE MILK",
        "001234567890",
        "3.99",
        "# ITEMS SOLD 1",
        "TOTAL",
        "3.99",
        "THANK YOU FOR SHOPPING",
    ]

    receipt = parse_receipt(tokens)

    assert receipt.retailer == RetailerType.WALMART
    assert [item.name for item in receipt.items] == ["GREAT VALUE MILK"]
    assert receipt.total_amount == Decimal("3.99")


def test_single_line_rows_keep_name_sku_and_price() -> None:
    tokens = [
        "WALMART",
        "GV MILK 1GAL 001234567890 3.99",
        "BANANAS 000000004011 0.58",
        "TOTAL 4.57",
    ]

    receipt = parse_receipt(tokens)

    assert [(i.name, i.sku, i.price) for i in receipt.items] == [
        ("GV MILK 1GAL", "001234567890", Decimal("3.99")),
        ("BANANAS", "000000004011", Decimal("0.58")),
    ]
    assert receipt.total_amount == Decimal("4.57")


def test_sku_on_its_own_line_before_single_line_price() -> None:
    receipt = WalmartParser().parse(["EGGS 18CT 007874235186", "PRODUCE BAG", "2.48"])

    assert [(i.name, i.sku, i.price) for i in receipt.items] == [
        ("EGGS 18CT PRODUCE BAG", "007874235186", Decimal("2.48")),
    ]


def test_tax_and_subtotal_lines_are_not_items() -> None:
    receipt = TargetParser().parse([
        "TARGET",
        "Expect More. Pay Less.",
        "UP&UP PAPER TOWELS",
        "012-34-5678",
        "11.99",
        "SUBTOTAL",
        "11.99",
        "SALES TAX 8.25%",
        "0.99",
        "TOTAL",
        "12.98",
    ])

    assert [(i.name, i.sku, i.price) for i in receipt.items] == [
        ("UP&UP PAPER TOWELS", "012345678", Decimal("11.99")),
    ]
    assert receipt.total_amount == Decimal("12.98")
    assert receipt.store_name == "Target"


def test_costco_membership_numbers_are_never_items() -> None:
    receipt = parse_receipt([
        "COSTCO WHOLESALE",
        "MEMBER 111222333",
        "111222333",
        "KIRKLAND WATER",
        "4.99",
        "12345",
        "BANANAS",
        "1.99",
        "**** TOTAL",
        "6.98",
    ])

    assert receipt.retailer == RetailerType.COSTCO
    assert [(i.name, i.price) for i in receipt.items] == [
        ("KIRKLAND WATER", Decimal("4.99")),
        ("BANANAS", Decimal("1.99")),
    ]
    assert all(item.sku is None for item in receipt.items)
    assert receipt.total_amount == Decimal("6.98")


def test_generic_parser_uses_header_as_store_name() -> None:
    receipt = parse_receipt(["CORNER MARKET", "APPLES", "2.50", "X", "1.00", "TOTAL", "3.50"])

    assert receipt.store_name == "CORNER MARKET"
    assert receipt.retailer == RetailerType.UNKNOWN
    assert [(i.name, i.price) for i in receipt.items] == [("APPLES", Decimal("2.50"))]
    assert receipt.total_amount == Decimal("3.50")


def test_generic_parser_records_caller_retailer_and_name_band() -> None:
    long_name = "A" * 120
    receipt = parse_receipt(["KROGER", "MILK", "3.49", long_name, "5.00"], RetailerType.KROGER)

    assert receipt.retailer == RetailerType.KROGER
    assert [i.name for i in receipt.items] == ["MILK"]


def test_generic_name_band_edges() -> None:
    receipt = GenericParser().parse(["SHOP", "C" * 99, "1.00", "D" * 100, "2.00", "EGG", "0.50"])

    assert [(len(i.name), i.price) for i in receipt.items] == [(99, Decimal("1.00")), (3, Decimal("0.50"))]


def test_generic_first_line_followed_by_price_is_an_item() -> None:
    receipt = parse_receipt(["APPLES", "2.50", "PEARS", "3.00"], RetailerType.KROGER)

    assert receipt.store_name == "APPLES"
    assert [(i.name, i.price) for i in receipt.items] == [
        ("APPLES", Decimal("2.50")),
        ("PEARS", Decimal("3.00")),
    ]


def test_savings_and_tax_totals_are_never_items() -> None:
    stacked = parse_receipt(
        ["WALMART", "GREAT VALUE MILK", "001234567890", "3.99", "TOTAL SAVINGS", "0.50", "TOTAL", "3.99"],
        RetailerType.WALMART,
    )
    single_line = parse_receipt(
        ["KROGER", "BREAD", "2.49", "TOTAL SAVINGS 0.50", "TOTAL TAX 0.12", "TOTAL 2.61"],
        RetailerType.KROGER,
    )

    assert [i.name for i in stacked.items] == ["GREAT VALUE MILK"]
    assert stacked.total_amount == Decimal("3.99")
    assert [(i.name, i.price) for i in single_line.items] == [("BREAD", Decimal("2.49"))]
    assert single_line.total_amount == Decimal("2.61")


def test_store_parsers_allow_longer_names() -> None:
    long_name = "B" * 150
    receipt = WalmartParser().parse([long_name, "5.00"])

    assert [i.name for i in receipt.items] == [long_name]


def test_two_character_names_are_discarded() -> None:
    receipt = WalmartParser().parse(["AB", "1.00", "MILK", "3.49"])

    assert [i.name for i in receipt.items] == ["MILK"]


def test_masked_card_numbers_and_separators_are_noise() -> None:
    receipt = GenericParser().parse(["SHOP", "====", "TEA", "2.00", "************1234", "------"])

    assert [i.name for i in receipt.items] == ["TEA"]


def test_dispatcher_survives_parser_failure(monkeypatch) -> None:
    local = ReceiptDispatcher()

    def explode(tokens, retailer=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(local.parsers[RetailerType.WALMART], "parse", explode)

    receipt = local.dispatch("WALMART\nMILK\n3.99")

    assert receipt.items == []
    assert receipt.retailer == RetailerType.WALMART
    assert receipt.raw_text == "WALMART\nMILK\n3.99"


def test_dispatcher_helpers() -> None:
    assert dispatcher.detect_retailer("Thanks for shopping at Safeway") == RetailerType.SAFEWAY
    assert dispatcher.list_parsers() == ["WalmartParser", "TargetParser", "CostcoParser", "GenericParser"]
    assert isinstance(dispatcher.parser_for(RetailerType.LOWES), GenericParser)
