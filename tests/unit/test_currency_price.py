import logging

import pytest

from backend import config
from backend.currency.price import (
    MissingRateError,
    calculate_discount,
    cents_to_unit,
    convert_price,
    format_converted_price,
    format_discount_badge,
    format_price,
    format_price_range,
    unit_to_cents,
)
from backend.currency.rates import ExchangeRates

RATES = ExchangeRates(base="USD", rates={"USD": 1.0, "EUR": 0.92, "JPY": 149.5, "GBP": 0.79, "KRW": 1320.0})


# --- format_price ---

def test_format_usd_english():
    assert format_price(199, "USD", "en") == "$1.99"


def test_format_jpy_has_no_decimals():
    formatted = format_price(0, "JPY", "en")
    assert formatted == "¥0"
    assert "." not in formatted


def test_format_jpy_rounds_half_up():
    # 12345 centimes -> 123.45 unités -> 123
    assert format_price(12345, "JPY", "en") == "¥123"
    assert format_price(12350, "JPY", "en") == "¥124"


def test_format_thousands_grouping():
    assert format_price(123456789, "USD", "en") == "$1,234,567.89"


def test_format_krw_and_vnd_zero_decimals():
    assert "." not in format_price(150000, "KRW", "en")
    assert "." not in format_price(150000, "VND", "en")


def test_format_euro_french_locale():
    formatted = format_price(123456, "EUR", "fr")
    assert "€" in formatted
    assert "1" in formatted and "234,56" in formatted


def test_format_lowercase_currency_code():
    assert format_price(199, "usd", "en") == "$1.99"


def test_format_unknown_locale_defaults_to_en_us():
    assert format_price(199, "USD", "xx") == "$1.99"


def test_format_falls_back_to_symbol_when_babel_fails(monkeypatch):
    def boom(*args, **kwargs):
        raise ValueError("babel down")
    monkeypatch.setattr("backend.currency.price.format_currency", boom)
    assert format_price(199, "EUR", "en") == "€1.99"
    assert format_price(500, "JPY", "en") == "¥5"


# --- convert_price ---

def test_convert_identity_returns_unit_amount():
    assert convert_price(1999, "EUR", "EUR", RATES) == pytest.approx(19.99)


def test_convert_from_base():
    assert convert_price(1000, "USD", "EUR", RATES) == pytest.approx(9.2)


def test_convert_to_base():
    assert convert_price(920, "EUR", "USD", RATES) == pytest.approx(10.0)


def test_convert_cross_pivot_matches_two_hops():
    direct = convert_price(10000, "EUR", "JPY", RATES)
    via_usd = convert_price(10000, "EUR", "USD", RATES) * 100
    two_hops = convert_price(via_usd, "USD", "JPY", RATES)
    assert direct == pytest.approx(two_hops)
    assert direct == pytest.approx(100 / 0.92 * 149.5)


def test_convert_missing_rate_degrades_to_unconverted(caplog):
    with caplog.at_level(logging.WARNING, logger="backend.currency.price"):
        assert convert_price(1234, "USD", "CHF", RATES) == pytest.approx(12.34)
    assert "CHF" in caplog.text


def test_convert_missing_source_rate_degrades():
    assert convert_price(500, "CHF", "EUR", RATES) == pytest.approx(5.0)


def test_convert_missing_rate_strict_raises():
    with pytest.raises(MissingRateError) as exc:
        convert_price(1234, "USD", "CHF", RATES, strict=True)
    assert exc.value.currency == "CHF"
    assert exc.value.base == "USD"


def test_convert_strict_from_config(monkeypatch):
    monkeypatch.setattr(config, "CURRENCY_STRICT_RATES", True)
    with pytest.raises(MissingRateError):
        convert_price(100, "CHF", "EUR", RATES)


def test_convert_zero_rate_treated_as_missing():
    rates = ExchangeRates(base="USD", rates={"EUR": 0.0})
    assert convert_price(100, "USD", "EUR", rates) == pytest.approx(1.0)


# --- format_converted_price ---

def test_format_converted_price_usd_to_jpy():
    assert format_converted_price(1000, "USD", "JPY", "en", RATES) == "¥1,495"


def test_format_converted_price_same_currency():
    assert format_converted_price(199, "USD", "USD", "en", RATES) == "$1.99"


def test_format_converted_price_without_rates():
    assert format_converted_price(199, "USD", "EUR", "en", None) == "$1.99"


def test_format_converted_price_usd_to_eur():
    assert format_converted_price(1000, "USD", "EUR", "en", RATES) == "€9.20"


# --- helpers ---

def test_format_price_range():
    assert format_price_range(100, 100, "USD", "en") == "$1.00"
    assert format_price_range(100, 250, "USD", "en") == "$1.00 - $2.50"


def test_calculate_discount():
    assert calculate_discount(10000, 7500) == 25
    assert calculate_discount(3000, 2000) == 33
    assert calculate_discount(1000, 1000) == 0
    assert calculate_discount(0, 10) == 0
    assert calculate_discount(1000, 1200) == 0


def test_format_discount_badge():
    assert format_discount_badge(10000, 7500) == "-25%"
    assert format_discount_badge(1000, 1000) == ""


def test_cents_unit_conversions():
    assert cents_to_unit(199, "USD") == pytest.approx(1.99)
    assert cents_to_unit(12350, "JPY") == 124.0
    assert unit_to_cents(1.99, "USD") == 199
    assert unit_to_cents(0.005, "USD") == 1
