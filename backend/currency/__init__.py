"""
Module 'currency': catalogue des devises, taux de change (cache), conversion et formatage des prix.
"""

from .config import (
    BASE_CURRENCY,
    CURRENCY_CONFIG,
    SUPPORTED_CURRENCIES,
    CurrencyInfo,
    get_currency_by_locale,
    get_currency_decimals,
    get_currency_info,
    get_intl_locale,
)
from .rates import (
    ExchangeRates,
    ExchangeRateService,
    HttpRateFetcher,
    get_exchange_rates,
    get_exchange_rate,
    refresh_exchange_rates,
    is_rates_expired,
)
from .price import (
    MissingRateError,
    convert_price,
    format_price,
    format_converted_price,
    format_price_range,
    calculate_discount,
    format_discount_badge,
    cents_to_unit,
    unit_to_cents,
)

__all__ = [
    # config
    "BASE_CURRENCY",
    "CURRENCY_CONFIG",
    "SUPPORTED_CURRENCIES",
    "CurrencyInfo",
    "get_currency_by_locale",
    "get_currency_decimals",
    "get_currency_info",
    "get_intl_locale",
    # rates
    "ExchangeRates",
    "ExchangeRateService",
    "HttpRateFetcher",
    "get_exchange_rates",
    "get_exchange_rate",
    "refresh_exchange_rates",
    "is_rates_expired",
    # price
    "MissingRateError",
    "convert_price",
    "format_price",
    "format_converted_price",
    "format_price_range",
    "calculate_discount",
    "format_discount_badge",
    "cents_to_unit",
    "unit_to_cents",
]
