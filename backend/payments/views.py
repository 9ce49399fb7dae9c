import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from backend.payments import service as payments_service
from backend.payments import stripe_client
from backend.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)

# Site B: endpoint appelé par la page /pay (format de réponse {code, message, data})
process_router = APIRouter(prefix="/api/payment", tags=["Payment site"])
# Webhook Stripe
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module backend.payments.views


class ProcessPaymentRequest(BaseModel):
    token: str = ""
    type: Optional[str] = "shop"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": -1, "message": message})


@process_router.post("/process", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def process_payment(payload: ProcessPaymentRequest):
    """
    Vérifie le token de passage et renvoie l'URL Stripe Checkout.
    - Succès: {"code": 0, "message": "ok", "data": {"checkoutUrl": "..."}}
    - Échec: {"code": -1, "message": "..."} avec HTTP 400 (token invalide/expiré, commande non payable)
    """
    if not payload.token:
        return _error(400, "Missing token")
    try:
        result = payments_service.process_payment(payload.token, payload.type or "shop")
    except HTTPException as e:
        return _error(e.status_code, str(e.detail))
    except Exception:
        logger.exception("payments.process failed")
        return _error(500, "Payment processing failed")
    return {"code": 0, "message": "ok", "data": {"checkoutUrl": result["checkoutUrl"]}}


@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe (Checkout): consomme checkout.session.completed pour marquer la commande payée.
    - Signature: valide via stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Réponses: {"status": "ok", "orderNo": ...} ou {"status": "ignored"}
    - Erreurs: 400 si signature/payload invalide
    """
    try:
        event = await stripe_client.parse_event(request)
    except Exception:
        logger.exception("Erreur webhook_stripe")
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")

    if (event or {}).get("type") != "checkout.session.completed":
        return JSONResponse({"status": "ignored"})

    order = payments_service.handle_checkout_completed(dict(event))
    if not order:
        return JSONResponse({"status": "ignored"})
    logger.info("payments.webhook order_no=%s status=%s", order.get("order_no"), order.get("status"))
    return JSONResponse({"status": "ok", "orderNo": order.get("order_no")})
