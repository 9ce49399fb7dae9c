"""
Cas d'usage 'orders': création depuis le panier, consultation, annulation,
passage en payé (webhook Stripe) et expédition (admin).
Montants en centimes, dans la devise des SKUs.
"""
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi import HTTPException

from backend.currency.config import DEFAULT_CURRENCY, normalize_code
from backend.payments import cart
from . import repository
from .models import OrderStateError, ShopOrderStatus

logger = logging.getLogger(__name__)

_ORDER_NO_ALPHABET = string.ascii_uppercase + string.digits


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_order_no() -> str:
    """Numéro lisible: SO + epoch ms + 4 caractères alphanumériques majuscules."""
    suffix = "".join(secrets.choice(_ORDER_NO_ALPHABET) for _ in range(4))
    return f"SO{int(time.time() * 1000)}{suffix}"


def _snapshot_item(order_id: str, sku: Dict[str, Any], qty: int, currency: str) -> Dict[str, Any]:
    product = sku.get("product") or {}
    unit_price = cart.price_cents_from_sku(sku)
    return {
        "id": str(uuid4()),
        "order_id": order_id,
        "sku_id": str(sku.get("id")),
        "product_id": str(product.get("id") or sku.get("product_id") or ""),
        "product_name": product.get("title") or sku.get("name") or "Article",
        "product_image": product.get("image") or sku.get("image"),
        "sku_code": sku.get("sku_code"),
        "quantity": qty,
        "unit_price": unit_price,
        "total_price": unit_price * qty,
        "currency": currency,
    }


def _discard_order(order_id: str) -> None:
    """Commande sans lignes: supprimée, ou à défaut annulée (jamais payable)."""
    if repository.delete_order(order_id):
        return
    logger.warning("orders.create delete failed, canceling order_id=%s", order_id)
    repository.update_order(order_id, {"status": ShopOrderStatus.CANCELED.value, "canceled_at": _now_iso()})


def create_order_from_cart(
    user: Dict[str, Any],
    items: List[Dict[str, Any]],
    shipping_address: Optional[Dict[str, Any]] = None,
    currency: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée une commande 'pending_payment' à partir d'un panier brut.
    - Agrège le panier, charge les SKUs, fige nom/prix dans les lignes.
    - 400 si aucune ligne valide, stock insuffisant ou devises mélangées.
    - RuntimeError si l'insertion échoue.
    """
    user_id = str((user or {}).get("id") or "")
    if not user_id:
        raise HTTPException(status_code=401, detail="Non authentifié")

    quantities = cart.aggregate_quantities(items)
    skus = repository.get_skus_map(quantities.keys())

    order_id = str(uuid4())
    lines: List[Dict[str, Any]] = []
    fallback_currency = normalize_code(currency) if currency else DEFAULT_CURRENCY
    order_currency: Optional[str] = None
    for sku_id, qty in quantities.items():
        sku = skus.get(sku_id)
        if not sku or cart.price_cents_from_sku(sku) <= 0:
            logger.warning("orders.create skip sku_id=%s (introuvable ou sans prix)", sku_id)
            continue
        stock = sku.get("stock")
        if stock is not None and int(stock) < qty:
            raise HTTPException(status_code=400, detail=f"Stock insuffisant pour {sku_id}")
        sku_currency = normalize_code(sku.get("currency")) or fallback_currency
        if order_currency and sku_currency != order_currency:
            raise HTTPException(status_code=400, detail="Devises mélangées dans le panier")
        order_currency = sku_currency
        lines.append(_snapshot_item(order_id, sku, qty, sku_currency))

    if not lines:
        raise HTTPException(status_code=400, detail="Aucun article valide")

    subtotal = sum(line["total_price"] for line in lines)
    order = {
        "id": order_id,
        "order_no": generate_order_no(),
        "user_id": user_id,
        "status": ShopOrderStatus.PENDING_PAYMENT.value,
        "currency": order_currency,
        "subtotal_amount": subtotal,
        "shipping_amount": 0,
        "total_amount": subtotal,
        "shipping_address": shipping_address or {},
        "created_at": _now_iso(),
    }
    created = repository.insert_order(order)
    if not created:
        raise RuntimeError("Insertion commande échouée")
    created_items = repository.insert_order_items(lines)
    if not created_items:
        _discard_order(order_id)
        raise RuntimeError("Insertion des lignes de commande échouée")

    logger.info("orders.create order_no=%s user_id=%s total=%s %s", order["order_no"], user_id, subtotal, order_currency)
    return {**created, "items": created_items}


def get_order_with_items(order_no: str) -> Optional[Dict[str, Any]]:
    order = repository.get_order_by_no(order_no)
    if not order:
        return None
    return {**order, "items": repository.get_order_items(order["id"])}


def get_order_for_user(order_no: str, user_id: str) -> Dict[str, Any]:
    """404 si inconnue ou supprimée, 403 si la commande appartient à un autre utilisateur."""
    order = get_order_with_items(order_no)
    if not order or order.get("deleted_at"):
        raise HTTPException(status_code=404, detail="Commande introuvable")
    if str(order.get("user_id")) != str(user_id):
        raise HTTPException(status_code=403, detail="Accès interdit")
    return order


def list_user_orders(user_id: str, page: int = 1, limit: int = 20, status: Optional[str] = None) -> List[Dict[str, Any]]:
    return repository.list_user_orders(user_id, page=page, limit=limit, status=status)


def cancel_order(order_no: str, user_id: str) -> Dict[str, Any]:
    """Annulation par l'acheteur, uniquement avant paiement."""
    order = get_order_for_user(order_no, user_id)
    if order.get("status") != ShopOrderStatus.PENDING_PAYMENT.value:
        raise OrderStateError(f"Commande {order_no} non annulable (status={order.get('status')})")
    updated = repository.update_order(order["id"], {"status": ShopOrderStatus.CANCELED.value, "canceled_at": _now_iso()})
    if not updated:
        raise RuntimeError("Mise à jour commande échouée")
    return updated


def attach_checkout_session(order_id: str, session_id: str) -> Optional[Dict[str, Any]]:
    return repository.update_order(order_id, {"payment_session_id": session_id, "payment_provider": "stripe"})


def mark_order_paid(order_id: str, session: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Passe la commande en 'pending_shipment' après paiement Stripe.
    Idempotent: une commande déjà sortie de 'pending_payment' est renvoyée telle quelle.
    """
    order = repository.get_order_by_id(order_id)
    if not order:
        logger.warning("orders.mark_paid unknown order_id=%s", order_id)
        return None
    if order.get("status") != ShopOrderStatus.PENDING_PAYMENT.value:
        logger.info("orders.mark_paid already processed order_no=%s status=%s", order.get("order_no"), order.get("status"))
        return order

    paid_amount = session.get("amount_total")
    data = {
        "status": ShopOrderStatus.PENDING_SHIPMENT.value,
        "paid_amount": int(paid_amount) if paid_amount is not None else order.get("total_amount"),
        "paid_at": _now_iso(),
        "payment_order_id": session.get("payment_intent") or session.get("id"),
        "payment_provider": "stripe",
    }
    updated = repository.update_order(order_id, data)
    if not updated:
        raise RuntimeError("Mise à jour commande échouée")
    logger.info("orders.mark_paid order_no=%s amount=%s", order.get("order_no"), data["paid_amount"])
    return updated


def ship_order(order_no: str, carrier: str, tracking_number: str) -> Dict[str, Any]:
    """Expédition (admin): uniquement depuis 'pending_shipment'."""
    if not (order_no or "").strip() or not (carrier or "").strip() or not (tracking_number or "").strip():
        raise HTTPException(status_code=400, detail="orderNo, shippingCarrier et trackingNumber requis")
    order = repository.get_order_by_no(order_no)
    if not order:
        raise HTTPException(status_code=404, detail="Commande introuvable")
    if order.get("status") != ShopOrderStatus.PENDING_SHIPMENT.value:
        raise OrderStateError(f"Commande {order_no} non expédiable (status={order.get('status')})")
    updated = repository.update_order_by_no(order_no, {
        "status": ShopOrderStatus.SHIPPED.value,
        "shipping_carrier": carrier.strip(),
        "tracking_number": tracking_number.strip(),
        "shipped_at": _now_iso(),
    })
    if not updated:
        raise RuntimeError("Mise à jour commande échouée")
    return updated
