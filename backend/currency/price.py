"""
Formatage et conversion de prix.

Les montants sont stockés en centimes (entiers) dans la devise du produit/commande.
- convert_price: pivot via la devise de base des taux (montant / taux_source * taux_cible)
- format_price: formatage localisé (Babel), décimales selon la devise (JPY/KRW/VND... = 0)
"""
import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from babel.core import Locale
from babel.numbers import format_currency

from backend import config
from backend.currency.config import (
    CURRENCY_CONFIG,
    get_currency_decimals,
    get_intl_locale,
    normalize_code,
)
from backend.currency.rates import ExchangeRates

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]

_FRACTION_RE = re.compile(r"0\.0+")


class MissingRateError(LookupError):
    """Taux absent de la table alors que la conversion stricte est demandée."""

    def __init__(self, currency: str, base: str) -> None:
        super().__init__(f"Missing exchange rate for {currency} (base {base})")
        self.currency = currency
        self.base = base


def _round_half_up(value: Number) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _unit_amount(cents: Number, decimals: int) -> Decimal:
    amount = Decimal(str(cents)) / Decimal(100)
    if decimals == 0:
        return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return amount


def _currency_pattern(intl_locale: str, decimals: int) -> str:
    """Pattern monétaire standard de la locale, avec le nombre de décimales imposé."""
    pattern = Locale.parse(intl_locale).currency_formats["standard"].pattern
    fraction = "0." + "0" * decimals if decimals > 0 else "0"
    return _FRACTION_RE.sub(fraction, pattern)


def format_price(cents: Number, currency: str = "USD", locale: str = "en") -> str:
    """
    Formate un prix en centimes pour l'affichage.
    Exemple: format_price(199, "USD", "en") -> "$1.99"
    Fallback manuel "<symbole><montant>" si Babel échoue (locale/devise inconnue).
    """
    code = normalize_code(currency) or "USD"
    decimals = get_currency_decimals(code)
    amount = _unit_amount(cents, decimals)
    intl_locale = get_intl_locale(locale)
    try:
        return format_currency(
            amount,
            code,
            format=_currency_pattern(intl_locale, decimals),
            locale=intl_locale,
            currency_digits=False,
        )
    except Exception:
        info = CURRENCY_CONFIG.get(code)
        symbol = info.symbol if info else code
        return f"{symbol}{amount:.{decimals}f}"


def convert_price(
    amount_cents: Number,
    from_currency: str,
    to_currency: str,
    rates: ExchangeRates,
    *,
    strict: Optional[bool] = None,
) -> float:
    """
    Convertit un montant en centimes vers l'unité de la devise cible (pas en centimes).
    Taux absent: montant renvoyé non converti (mode dégradé) ou MissingRateError si strict.
    """
    src = normalize_code(from_currency)
    dst = normalize_code(to_currency)
    amount = float(amount_cents) / 100

    if src == dst:
        return amount

    strict_mode = config.CURRENCY_STRICT_RATES if strict is None else strict

    def _missing(code: str) -> float:
        if strict_mode:
            raise MissingRateError(code, rates.base)
        logger.warning("Missing exchange rate for %s (base %s), price left unconverted", code, rates.base)
        return amount

    if src == rates.base:
        rate = rates.rates.get(dst)
        if not rate:
            return _missing(dst)
        return amount * rate

    if dst == rates.base:
        rate = rates.rates.get(src)
        if not rate:
            return _missing(src)
        return amount / rate

    from_rate = rates.rates.get(src)
    to_rate = rates.rates.get(dst)
    if not from_rate:
        return _missing(src)
    if not to_rate:
        return _missing(dst)
    return amount / from_rate * to_rate


def format_converted_price(
    cents: Number,
    from_currency: str,
    target_currency: str,
    locale: str,
    rates: Optional[ExchangeRates],
) -> str:
    if rates is None or normalize_code(from_currency) == normalize_code(target_currency):
        return format_price(cents, from_currency, locale)

    converted = convert_price(cents, from_currency, target_currency, rates)
    if get_currency_decimals(target_currency) == 0:
        final_cents = _round_half_up(converted) * 100
    else:
        final_cents = _round_half_up(converted * 100)
    return format_price(final_cents, target_currency, locale)


def format_price_range(min_cents: Number, max_cents: Number, currency: str = "USD", locale: str = "en") -> str:
    if min_cents == max_cents:
        return format_price(min_cents, currency, locale)
    return f"{format_price(min_cents, currency, locale)} - {format_price(max_cents, currency, locale)}"


def calculate_discount(original_cents: Number, current_cents: Number) -> int:
    """Pourcentage de remise arrondi (0 si pas de remise)."""
    if original_cents <= 0 or current_cents >= original_cents:
        return 0
    return _round_half_up((original_cents - current_cents) / original_cents * 100)


def format_discount_badge(original_cents: Number, current_cents: Number) -> str:
    discount = calculate_discount(original_cents, current_cents)
    return f"-{discount}%" if discount > 0 else ""


def cents_to_unit(cents: Number, currency: str = "USD") -> float:
    return float(_unit_amount(cents, get_currency_decimals(currency)))


def unit_to_cents(amount: Number, currency: str = "USD") -> int:
    return _round_half_up(Decimal(str(amount)) * 100)
