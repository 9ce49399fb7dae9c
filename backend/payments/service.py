"""
Cas d'usage 'payments': passage site A -> site B puis Stripe Checkout.
- create_payment_link (A): token signé + URL /pay du site B
- process_payment (B): vérifie le token, recharge la commande, crée la session Stripe
- handle_checkout_completed (B): webhook, passe la commande en payée
"""
import logging
import time
from typing import Any, Dict, Optional

import redis
from fastapi import HTTPException

from backend import config
from backend.orders import repository as orders_repository
from backend.orders import service as orders_service
from backend.orders.models import OrderStateError, ShopOrderStatus
from . import cart
from . import stripe_client
from .metadata import extract_metadata_from_session, extract_session
from .token import (
    InMemoryReplayGuard,
    RedisReplayGuard,
    ReplayGuard,
    build_payment_url,
    generate_payment_token,
    token_replay_key,
    verify_payment_token,
)

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Invalid or expired payment token"

_replay_guard: Optional[ReplayGuard] = None


def get_replay_guard() -> Optional[ReplayGuard]:
    """Anti-rejeu actif seulement si PAYMENT_TOKEN_SINGLE_USE=1 (Redis si configuré, sinon mémoire)."""
    global _replay_guard
    if not config.PAYMENT_TOKEN_SINGLE_USE:
        return None
    if _replay_guard is None:
        if config.RATES_REDIS_URL:
            _replay_guard = RedisReplayGuard(redis.from_url(config.RATES_REDIS_URL, decode_responses=True))
        else:
            _replay_guard = InMemoryReplayGuard()
    return _replay_guard


def set_replay_guard(guard: Optional[ReplayGuard]) -> None:
    global _replay_guard
    _replay_guard = guard


def create_payment_link(order: Dict[str, Any], order_type: str = "shop") -> Dict[str, str]:
    """
    Site A: émet le token de paiement pour une commande en attente.
    Lève OrderStateError si la commande n'est pas 'pending_payment',
    PaymentTokenConfigError si le secret manque.
    """
    if order.get("status") != ShopOrderStatus.PENDING_PAYMENT.value:
        raise OrderStateError(f"Commande {order.get('order_no')} non payable (status={order.get('status')})")
    token = generate_payment_token(str(order["id"]), str(order["order_no"]))
    return {"token": token, "url": build_payment_url(token, order_type=order_type)}


def _site_url(path_template: str, order_no: str) -> str:
    return f"{config.MAIN_SITE_URL}{path_template.format(order_no=order_no)}"


def process_payment(token: str, order_type: str = "shop") -> Dict[str, Any]:
    """
    Site B: vérifie le token et crée la session Stripe Checkout.
    - 400 "Invalid or expired payment token" quelle que soit la cause de rejet du token.
    - 400 si type inconnu, commande introuvable, numéro incohérent ou statut non payable.
    Retour: {"checkoutUrl": ..., "sessionId": ...}
    Mode usage unique: le token n'est consommé qu'une fois la commande validée, et
    redevient utilisable si la création de la session Stripe échoue.
    """
    if order_type != "shop":
        raise HTTPException(status_code=400, detail="Unsupported order type")

    payload = verify_payment_token(token)
    if payload is None:
        raise HTTPException(status_code=400, detail=INVALID_TOKEN_MESSAGE)

    order = orders_repository.get_order_by_id(payload.order_id)
    if not order or order.get("order_no") != payload.order_no:
        logger.warning("payments.process order mismatch order_id=%s order_no=%s", payload.order_id, payload.order_no)
        raise HTTPException(status_code=400, detail="Order not found")
    if order.get("status") != ShopOrderStatus.PENDING_PAYMENT.value:
        raise HTTPException(status_code=400, detail="Order is not awaiting payment")

    items = orders_repository.get_order_items(order["id"])
    line_items = cart.to_line_items(items, order.get("currency") or "usd")

    guard = get_replay_guard()
    replay_key = token_replay_key(token)
    if guard is not None and not guard.claim(replay_key, payload.exp, int(time.time() * 1000)):
        logger.warning("Payment token replayed order_no=%s", payload.order_no)
        raise HTTPException(status_code=400, detail=INVALID_TOKEN_MESSAGE)

    try:
        session = stripe_client.create_session(
            line_items=line_items,
            success_url=_site_url(config.CHECKOUT_SUCCESS_PATH, order["order_no"]),
            cancel_url=_site_url(config.CHECKOUT_CANCEL_PATH, order["order_no"]),
            metadata=cart.make_metadata(order, order_type),
            client_reference_id=str(order["id"]),
        )
        session_id = session.get("id")
        checkout_url = session.get("url")
        if not checkout_url:
            raise HTTPException(status_code=400, detail="Session Stripe invalide")
    except Exception:
        if guard is not None:
            guard.release(replay_key)
        raise

    if session_id:
        orders_service.attach_checkout_session(order["id"], session_id)
    logger.info("payments.process order_no=%s session_id=%s", order["order_no"], session_id)
    return {"checkoutUrl": checkout_url, "sessionId": session_id}


def handle_checkout_completed(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Webhook checkout.session.completed: passe la commande référencée en 'pending_shipment'.
    Retourne la commande mise à jour, ou None si l'event ne référence aucune commande boutique.
    """
    session = extract_session(event)
    meta = extract_metadata_from_session(session)
    if meta["type"] and meta["type"] != "shop":
        return None
    order_id = meta["order_id"] or str(session.get("client_reference_id") or "")
    if not order_id:
        logger.warning("payments.webhook session without order reference id=%s", session.get("id"))
        return None
    if session.get("payment_status") not in (None, "paid", "no_payment_required"):
        logger.info("payments.webhook unpaid session order_id=%s status=%s", order_id, session.get("payment_status"))
        return None
    return orders_service.mark_order_paid(order_id, session)
