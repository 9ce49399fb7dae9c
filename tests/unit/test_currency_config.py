from starlette.requests import Request
from starlette.responses import Response

from backend.currency.config import (
    CURRENCY_CONFIG,
    SUPPORTED_CURRENCIES,
    get_currency_by_locale,
    get_currency_decimals,
    get_currency_info,
    get_intl_locale,
    is_supported_currency,
)
from backend.currency.preference import (
    CURRENCY_COOKIE_NAME,
    resolve_currency,
    resolve_locale,
    set_currency_cookie,
)


def _request(query: str = "", headers=None, cookies=None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        raw_headers.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "query_string": query.encode(), "headers": raw_headers})


def test_catalogue_has_thirty_currencies():
    assert len(SUPPORTED_CURRENCIES) == 30
    assert set(SUPPORTED_CURRENCIES) == set(CURRENCY_CONFIG)


def test_zero_decimal_currencies():
    for code in ("JPY", "KRW", "VND", "IDR", "TWD"):
        assert get_currency_decimals(code) == 0
    assert get_currency_decimals("USD") == 2
    assert get_currency_decimals("XXX") == 2


def test_currency_info_lookup_is_case_insensitive():
    info = get_currency_info("eur")
    assert info.code == "EUR" and info.symbol == "€"
    assert info.to_dict()["decimals"] == 2
    assert get_currency_info("nope") is None
    assert is_supported_currency(" gbp ")
    assert not is_supported_currency("")


def test_locale_maps():
    assert get_currency_by_locale("ja") == "JPY"
    assert get_currency_by_locale("FR") == "EUR"
    assert get_currency_by_locale("xx") == "USD"
    assert get_intl_locale("de") == "de_DE"
    assert get_intl_locale(None) == "en_US"


def test_resolve_locale_priority():
    assert resolve_locale(_request("locale=JA")) == "ja"
    assert resolve_locale(_request(headers={"Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8"})) == "fr"
    assert resolve_locale(_request()) == "en"


def test_resolve_currency_priority():
    req = _request(cookies={CURRENCY_COOKIE_NAME: "gbp"})
    assert resolve_currency(req, "ja", explicit="eur") == "EUR"
    assert resolve_currency(req, "ja") == "GBP"
    assert resolve_currency(_request(cookies={CURRENCY_COOKIE_NAME: "XYZ"}), "ja") == "JPY"
    assert resolve_currency(_request(), "xx", explicit="nope") == "USD"


def test_set_currency_cookie():
    response = Response()
    set_currency_cookie(response, "eur")
    header = response.headers["set-cookie"]
    assert header.startswith(f"{CURRENCY_COOKIE_NAME}=EUR")
    assert "Max-Age=31536000" in header
