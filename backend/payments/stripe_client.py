"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
import logging
from typing import Any, Dict, List

import stripe
from fastapi import Request

from backend import config

logger = logging.getLogger(__name__)

# module backend.payments.stripe_client
def _as_dict(obj: Any) -> Dict[str, Any]:
    """StripeObject -> dict récursif (les versions récentes du SDK n'héritent plus de dict)."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)

def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY (lu à l'appel).
    - Sans clé, les appels Stripe échouent côté SDK (No API key provided).
    """
    if config.STRIPE_SECRET_KEY:
        stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
    client_reference_id: str = "",
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    session = stripe.checkout.Session.create(
        line_items=line_items,
        mode=mode,
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
        client_reference_id=client_reference_id or None,
        payment_method_types=["card"],
    )
    return _as_dict(session)

def get_session(session_id: str) -> Dict[str, Any]:
    require_stripe()
    return _as_dict(stripe.checkout.Session.retrieve(session_id))

async def parse_event(request: Request):
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or ""
    event = stripe.Webhook.construct_event(payload, sig_header, config.STRIPE_WEBHOOK_SECRET or "")
    return _as_dict(event)
