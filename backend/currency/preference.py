"""
Devise d'affichage du visiteur.
Priorité: paramètre explicite -> cookie NEXT_CURRENCY -> devise par défaut de la langue.
"""
from typing import Optional

from fastapi import Request
from fastapi.responses import Response

from backend.config import COOKIE_SECURE
from backend.currency.config import get_currency_by_locale, is_supported_currency, normalize_code

CURRENCY_COOKIE_NAME = "NEXT_CURRENCY"
CURRENCY_COOKIE_MAX_AGE = 365 * 24 * 60 * 60


def _language(tag: str) -> str:
    """Langue d'une balise: "fr-FR" ou "fr_FR;q=0.9" -> "fr"."""
    return tag.split(";")[0].strip().lower().replace("_", "-").split("-")[0]


def resolve_locale(request: Request, default: str = "en") -> str:
    explicit = _language(request.query_params.get("locale") or "")
    if explicit:
        return explicit
    accept = (request.headers.get("accept-language") or "").strip()
    if accept:
        return _language(accept.split(",")[0]) or default
    return default


def resolve_currency(request: Request, locale: str, explicit: Optional[str] = None) -> str:
    for candidate in (explicit, request.cookies.get(CURRENCY_COOKIE_NAME)):
        if candidate and is_supported_currency(candidate):
            return normalize_code(candidate)
    return get_currency_by_locale(locale)


def set_currency_cookie(response: Response, currency: str) -> None:
    response.set_cookie(
        key=CURRENCY_COOKIE_NAME,
        value=normalize_code(currency),
        max_age=CURRENCY_COOKIE_MAX_AGE,
        secure=COOKIE_SECURE,
        samesite="Lax",
        path="/",
    )
