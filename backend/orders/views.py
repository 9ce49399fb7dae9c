import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from backend.orders import service as orders_service
from backend.orders.models import OrderStateError
from backend.payments import service as payments_service
from backend.payments.token import PaymentTokenConfigError
from backend.utils.rate_limit import optional_rate_limit
from backend.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

# module backend.orders.views


class CartItem(BaseModel):
    sku_id: Optional[str] = None
    id: Optional[str] = None
    quantity: int = 1


class CreateOrderRequest(BaseModel):
    items: List[CartItem] = Field(default_factory=list)
    shipping_address: Dict[str, Any] = Field(default_factory=dict, alias="shippingAddress")
    currency: Optional[str] = None

    model_config = {"populate_by_name": True}


@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
@router.post("/", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))], include_in_schema=False)
def create_order(payload: CreateOrderRequest, user: dict = Depends(require_user)):
    """
    Crée une commande 'pending_payment' à partir du panier.
    - Entrée JSON: { "items": [ { "sku_id": "...", "quantity": 2 } ], "shippingAddress": {...}, "currency": "EUR" }
    - 400 si panier invalide, 500 si l'enregistrement échoue.
    """
    items = [i.model_dump() for i in payload.items]
    try:
        order = orders_service.create_order_from_cart(user, items, payload.shipping_address, payload.currency)
    except HTTPException:
        raise
    except RuntimeError:
        logger.exception("orders.create failed user_id=%s", user.get("id"))
        raise HTTPException(status_code=500, detail="Création de commande impossible")
    return order


@router.get("")
@router.get("/", include_in_schema=False)
def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[str] = None,
    user: dict = Depends(require_user),
):
    items = orders_service.list_user_orders(user.get("id"), page=page, limit=limit, status=status)
    return {"items": items, "page": page, "limit": limit}


@router.get("/{order_no}")
def get_order(order_no: str, user: dict = Depends(require_user)):
    return orders_service.get_order_for_user(order_no, user.get("id"))


@router.post("/{order_no}/cancel")
def cancel_order(order_no: str, user: dict = Depends(require_user)):
    try:
        return orders_service.cancel_order(order_no, user.get("id"))
    except OrderStateError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{order_no}/pay-link", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_pay_link(order_no: str, user: dict = Depends(require_user)):
    """
    Lien de paiement vers le site B: {token, url}.
    - 400 si la commande n'est plus en attente de paiement.
    - 500 si PAYMENT_TOKEN_SECRET n'est pas configuré.
    """
    order = orders_service.get_order_for_user(order_no, user.get("id"))
    try:
        return payments_service.create_payment_link(order)
    except OrderStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentTokenConfigError:
        logger.error("orders.pay_link PAYMENT_TOKEN_SECRET manquant")
        raise HTTPException(status_code=500, detail="Paiement indisponible")
