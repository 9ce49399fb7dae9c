"""
Catalogue des devises: symboles, décimales, correspondance langue -> devise et langue -> locale.
"""
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from backend.config import BASE_CURRENCY as _BASE_CURRENCY


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    symbol: str
    name: str
    name_local: str
    decimals: int

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def _c(code: str, symbol: str, name: str, name_local: str, decimals: int = 2) -> CurrencyInfo:
    return CurrencyInfo(code=code, symbol=symbol, name=name, name_local=name_local, decimals=decimals)


CURRENCY_CONFIG: Dict[str, CurrencyInfo] = {
    c.code: c
    for c in (
        _c("USD", "$", "US Dollar", "US Dollar"),
        _c("CNY", "¥", "Chinese Yuan", "人民币"),
        _c("JPY", "¥", "Japanese Yen", "日本円", 0),
        _c("KRW", "₩", "South Korean Won", "원", 0),
        _c("EUR", "€", "Euro", "Euro"),
        _c("GBP", "£", "British Pound", "British Pound"),
        _c("BRL", "R$", "Brazilian Real", "Real"),
        _c("RUB", "₽", "Russian Ruble", "Рубль"),
        _c("AED", "د.إ", "UAE Dirham", "درهم"),
        _c("INR", "₹", "Indian Rupee", "रुपया"),
        _c("THB", "฿", "Thai Baht", "บาท"),
        _c("VND", "₫", "Vietnamese Dong", "Đồng", 0),
        _c("IDR", "Rp", "Indonesian Rupiah", "Rupiah", 0),
        _c("TRY", "₺", "Turkish Lira", "Lira"),
        _c("PLN", "zł", "Polish Zloty", "Złoty"),
        _c("MYR", "RM", "Malaysian Ringgit", "Ringgit"),
        _c("SGD", "S$", "Singapore Dollar", "Singapore Dollar"),
        _c("HKD", "HK$", "Hong Kong Dollar", "港幣"),
        _c("TWD", "NT$", "Taiwan Dollar", "新台幣", 0),
        _c("AUD", "A$", "Australian Dollar", "Australian Dollar"),
        _c("CAD", "C$", "Canadian Dollar", "Canadian Dollar"),
        _c("CHF", "CHF", "Swiss Franc", "Franken"),
        _c("SEK", "kr", "Swedish Krona", "Krona"),
        _c("NOK", "kr", "Norwegian Krone", "Krone"),
        _c("DKK", "kr", "Danish Krone", "Krone"),
        _c("MXN", "$", "Mexican Peso", "Peso"),
        _c("ZAR", "R", "South African Rand", "Rand"),
        _c("PHP", "₱", "Philippine Peso", "Peso"),
        _c("NZD", "NZ$", "New Zealand Dollar", "New Zealand Dollar"),
        _c("SAR", "﷼", "Saudi Riyal", "ريال"),
    )
}

SUPPORTED_CURRENCIES: List[str] = list(CURRENCY_CONFIG.keys())

DEFAULT_CURRENCY = "USD"
# Devise pivot des taux de change
BASE_CURRENCY = _BASE_CURRENCY or "USD"

LOCALE_CURRENCY_MAP: Dict[str, str] = {
    "en": "USD",
    "zh": "CNY",
    "ja": "JPY",
    "ko": "KRW",
    "de": "EUR",
    "fr": "EUR",
    "es": "EUR",
    "pt": "BRL",
    "it": "EUR",
    "ru": "RUB",
    "ar": "AED",
    "hi": "INR",
    "th": "THB",
    "vi": "VND",
    "id": "IDR",
    "tr": "TRY",
    "pl": "PLN",
    "nl": "EUR",
}

# Langue -> identifiant de locale Babel (CLDR)
LOCALE_TO_INTL_MAP: Dict[str, str] = {
    "en": "en_US",
    "zh": "zh_CN",
    "ja": "ja_JP",
    "ko": "ko_KR",
    "de": "de_DE",
    "fr": "fr_FR",
    "es": "es_ES",
    "pt": "pt_BR",
    "it": "it_IT",
    "ru": "ru_RU",
    "ar": "ar_AE",
    "hi": "hi_IN",
    "th": "th_TH",
    "vi": "vi_VN",
    "id": "id_ID",
    "tr": "tr_TR",
    "pl": "pl_PL",
    "nl": "nl_NL",
}


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def is_supported_currency(code: Optional[str]) -> bool:
    return normalize_code(code) in CURRENCY_CONFIG


def get_currency_by_locale(locale: Optional[str]) -> str:
    return LOCALE_CURRENCY_MAP.get((locale or "").strip().lower(), DEFAULT_CURRENCY)


def get_currency_info(code: Optional[str]) -> Optional[CurrencyInfo]:
    return CURRENCY_CONFIG.get(normalize_code(code))


def get_currency_decimals(code: Optional[str]) -> int:
    """Nombre de décimales d'affichage (2 par défaut pour une devise inconnue)."""
    info = get_currency_info(code)
    return info.decimals if info else 2


def get_intl_locale(locale: Optional[str]) -> str:
    return LOCALE_TO_INTL_MAP.get((locale or "").strip().lower(), "en_US")
