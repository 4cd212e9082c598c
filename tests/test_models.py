import re
from datetime import datetime

import pytest

from coffee_stand.models import (
    Order, OrderItem, Product, User, generate_local_id, new_order_id, order_to_row,
    parse_price, parse_timestamp, product_to_row, row_to_order, row_to_product,
    clean_text, row_to_user, validate_product_form,
)


def test_local_id_is_stable_and_row_aware():
    a = generate_local_id("Капучино", "0,3 л", 2)
    assert a == generate_local_id("Капучино", "0,3 л", 2)
    assert re.fullmatch(r"prod_[0-9a-f]+_2", a)
    assert a != generate_local_id("Капучино", "0,3 л", 3)
    assert generate_local_id("Эспрессо", None, 5) == generate_local_id("Эспрессо", "", 5)


def test_local_id_wraps_to_signed_32_bits():
    def reference(s):
        h = 0
        for ch in s:
            h = (h * 31 + ord(ch)) % 2 ** 32
            if h >= 2 ** 31:
                h -= 2 ** 32
        return abs(h)

    for name, volume, row in [("a", None, 2), ("Холодный кофе", "0,5 л", 24)]:
        expected = reference(f"{name}-{volume or 'none'}-{row}")
        assert expected < 2 ** 31 + 1
        assert generate_local_id(name, volume, row) == f"prod_{expected:x}_{row}"


@pytest.mark.parametrize("raw,expected", [
    ("185", 185.0),
    ("165,5", 165.5),
    (" 12.25 ", 12.25),
    (",5", 0.5),
    (150, 150.0),
    ("", None),
    ("abc", None),
    (None, None),
    ("nan", None),
    ("inf", None),
    ("-Infinity", None),
    ("1e3", None),
    ("1_000", None),
    (float("nan"), None),
    (float("inf"), None),
    ([185], None),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


def test_row_to_product_uses_sheet_row_numbers():
    p = row_to_product(["Латте", "0,3 л", "165", "", ""], 0)
    assert p.name == "Латте"
    assert p.volume == "0,3 л"
    assert p.price == 165.0
    assert p.image_url is None
    assert p.id.endswith("_2")


def test_row_to_product_skips_nameless_rows():
    assert row_to_product([], 0) is None
    assert row_to_product(["", "0,3 л", "100"], 3) is None


def test_product_to_row_blanks_missing_fields():
    row = product_to_row(Product(id="x", name="Эспрессо", price=100.0))
    assert row == ["Эспрессо", "", 100.0, "", ""]


def test_row_to_user_and_session_dict():
    user = row_to_user(["7", "alice", "pw", "Алиса", "", "Иванова", "Бариста", ""])
    assert user.id == "7"
    assert user.middle_name is None
    assert user.display_name() == "Алиса Иванова"
    assert "password_hash" not in user.session_dict()
    assert User(id="1", login="solo").display_name() == "solo"


def test_order_row_conversion():
    order = Order(id="order_1", items=[OrderItem("Раф", 195.0, 2, "0,2 л")],
                  total_price=390.0, timestamp="01.03.2025 10:00:00",
                  payment_method="Карта", employee="Алиса")
    row = [str(c) for c in order_to_row(order)]
    back = row_to_order(row)
    assert back.items[0].quantity == 2
    assert back.items[0].volume == "0,2 л"
    assert back.total_price == 390.0
    assert back.payment_method == "Карта"


def test_row_to_order_rejects_broken_items():
    with pytest.raises(ValueError):
        row_to_order(["order_x", "01.03.2025 10:00:00", "{not json", "Карта", "10", ""])


def test_new_order_id_shape():
    assert re.fullmatch(r"order_\d{13}_[0-9a-z]{5}", new_order_id())


def test_parse_timestamp_formats():
    assert parse_timestamp("01.03.2025 09:15:00") == datetime(2025, 3, 1, 9, 15)
    assert parse_timestamp("2025-03-01T09:15:00") == datetime(2025, 3, 1, 9, 15)
    assert parse_timestamp("2025-03-01T09:15:00.000Z").tzinfo is None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp("") is None


def test_validate_product_form_ok():
    product, errors = validate_product_form(
        {"name": " Раф ", "volume": "0,3 л", "price": "245,5", "imageUrl": "https://x.io/r.jpg"})
    assert errors == {}
    assert product.name == "Раф"
    assert product.price == 245.5
    assert product.id is None


def test_validate_product_form_errors():
    product, errors = validate_product_form({"name": "R", "price": "-1", "imageUrl": "not a url"})
    assert product is None
    assert set(errors) == {"name", "price", "imageUrl"}
    _, errors = validate_product_form({"name": "Раф", "price": "дорого"})
    assert errors["price"] == "Цена должна быть числом"


@pytest.mark.parametrize("price", ["nan", "inf", "1e3", "1_000", float("nan")])
def test_validate_product_form_rejects_non_decimal_prices(price):
    product, errors = validate_product_form({"name": "Раф", "price": price})
    assert product is None
    assert errors["price"] == "Цена должна быть числом"


def test_validate_product_form_coerces_scalar_fields():
    product, errors = validate_product_form({"name": "Раф", "volume": 0.3, "price": 195,
                                             "dataAiHint": ["coffee"]})
    assert errors == {}
    assert product.volume == "0.3"
    assert product.price == 195.0
    assert product.data_ai_hint is None


def test_clean_text():
    assert clean_text("  Раф ") == "Раф"
    assert clean_text(123) == "123"
    assert clean_text(None) == ""
    assert clean_text({"a": 1}) == ""
    assert clean_text([1, 2]) == ""
