import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from backend.admin import service as admin_service
from backend.orders.models import OrderStateError
from backend.utils.csrf import csrf_protect
from backend.utils.rate_limit import optional_rate_limit
from backend.utils.security import require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])

# module backend.admin.views


class ShipOrderRequest(BaseModel):
    orderNo: str = ""
    shippingCarrier: str = ""
    trackingNumber: str = ""


@router.get("/orders")
def admin_list_orders(
    status: Optional[str] = None,
    order_no: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=30, ge=1, le=100),
    user: dict = Depends(require_admin),
):
    return admin_service.list_orders(page=page, limit=limit, status=status, order_no=order_no)


@router.post(
    "/orders/ship",
    dependencies=[Depends(csrf_protect), Depends(optional_rate_limit(times=30, seconds=60))],
)
def admin_ship_order(payload: ShipOrderRequest, user: dict = Depends(require_admin)):
    """
    Expédie une commande payée.
    - 400 si champ manquant ou commande pas en 'pending_shipment'
    - 404 si commande introuvable
    """
    try:
        order = admin_service.ship_order(payload.orderNo, payload.shippingCarrier, payload.trackingNumber)
    except OrderStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("admin.ship order_no=%s by=%s", payload.orderNo, user.get("email"))
    return order
