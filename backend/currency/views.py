"""Endpoints devises: taux, devises supportées, formatage et préférence du visiteur.
- /rates: snapshot courant (cache mémoire/Redis, API, ou table de secours)
- /rates/refresh: force le rechargement (admin)
- /format: prix converti et formaté dans la devise du visiteur
- /preference: mémorise la devise choisie (cookie NEXT_CURRENCY)
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from backend.utils.security import require_admin
from backend.currency import rates as rates_service
from backend.currency.config import CURRENCY_CONFIG, is_supported_currency, normalize_code
from backend.currency.price import MissingRateError, convert_price, format_converted_price
from backend.currency.preference import resolve_currency, resolve_locale, set_currency_cookie

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/currency", tags=["Currency API"])

# module backend.currency.views


class CurrencyPreferenceRequest(BaseModel):
    currency: str


@router.get("/rates")
def get_rates() -> Dict[str, Any]:
    return rates_service.get_exchange_rates().to_dict()


@router.post("/rates/refresh", dependencies=[Depends(require_admin)])
def refresh_rates() -> Dict[str, Any]:
    return rates_service.refresh_exchange_rates().to_dict()


@router.get("/supported")
def list_supported() -> Dict[str, Any]:
    return {"currencies": [info.to_dict() for info in CURRENCY_CONFIG.values()]}


@router.get("/format")
def format_amount(
    request: Request,
    cents: int = Query(..., ge=0),
    from_currency: str = Query("USD", alias="from"),
    currency: Optional[str] = Query(None),
) -> Dict[str, Any]:
    """Convertit puis formate un prix (centimes) dans la devise du visiteur."""
    locale = resolve_locale(request)
    target = resolve_currency(request, locale, explicit=currency)
    source = normalize_code(from_currency)
    rates = rates_service.get_exchange_rates()
    try:
        amount = convert_price(cents, source, target, rates)
        formatted = format_converted_price(cents, source, target, locale, rates)
    except MissingRateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"currency": target, "locale": locale, "amount": amount, "formatted": formatted}


@router.post("/preference")
def set_preference(body: CurrencyPreferenceRequest):
    if not is_supported_currency(body.currency):
        raise HTTPException(status_code=400, detail="Devise non supportée")
    code = normalize_code(body.currency)
    response = JSONResponse({"currency": code})
    set_currency_cookie(response, code)
    return response
