import pytest
from fastapi import HTTPException

from backend.payments import cart
from backend.payments.metadata import extract_metadata_from_session, extract_session


def test_aggregate_quantities_merges_and_skips_invalid():
    items = [
        {"sku_id": "A", "quantity": 2},
        {"id": "A", "quantity": "1"},
        {"sku_id": "B", "quantity": 0},
        {"sku_id": "", "quantity": 3},
        {"sku_id": "C", "quantity": "x"},
        {"sku_id": " D ", "quantity": 1},
    ]
    assert cart.aggregate_quantities(items) == {"A": 3, "D": 1}


def test_aggregate_quantities_nothing_valid():
    with pytest.raises(HTTPException) as exc:
        cart.aggregate_quantities([{"sku_id": "A", "quantity": -1}])
    assert exc.value.status_code == 400


def test_price_cents_from_sku():
    assert cart.price_cents_from_sku({"price": "1999"}) == 1999
    assert cart.price_cents_from_sku({"price": None}) == 0
    assert cart.price_cents_from_sku({"price": "abc"}) == 0


def test_to_line_items():
    items = [
        {"product_name": "Mug", "quantity": 2, "unit_price": 1000, "currency": "EUR", "product_image": "https://img/m.png"},
        {"product_name": "Free", "quantity": 1, "unit_price": 0},
        {"quantity": 1, "unit_price": 250},
    ]
    lines = cart.to_line_items(items, "EUR")
    assert lines[0] == {
        "quantity": 2,
        "price_data": {
            "currency": "eur",
            "unit_amount": 1000,
            "product_data": {"name": "Mug", "images": ["https://img/m.png"]},
        },
    }
    assert len(lines) == 2
    assert lines[1]["price_data"]["product_data"] == {"name": "Article"}
    assert lines[1]["price_data"]["currency"] == "eur"


def test_to_line_items_empty():
    with pytest.raises(HTTPException):
        cart.to_line_items([{"quantity": 0, "unit_price": 100}], "USD")


def test_make_metadata():
    meta = cart.make_metadata({"id": 42, "order_no": "SO1", "user_id": "u1"})
    assert meta == {"order_id": "42", "order_no": "SO1", "user_id": "u1", "type": "shop"}


def test_extract_metadata_tolerant():
    assert extract_metadata_from_session({}) == {"order_id": "", "order_no": "", "type": ""}
    assert extract_metadata_from_session(None) == {"order_id": "", "order_no": "", "type": ""}
    event = {"data": {"object": {"id": "cs", "metadata": {"order_id": "o", "order_no": "n", "type": "shop"}}}}
    assert extract_metadata_from_session(extract_session(event)) == {"order_id": "o", "order_no": "n", "type": "shop"}
    assert extract_session("nope") == {}
