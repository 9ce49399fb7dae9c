"""
Module 'orders' (feature-first): commandes boutique.
"""

from .models import ShopOrderStatus, OrderStateError
from .service import (
    generate_order_no,
    create_order_from_cart,
    get_order_for_user,
    list_user_orders,
    cancel_order,
    mark_order_paid,
    ship_order,
)

__all__ = [
    # models
    "ShopOrderStatus",
    "OrderStateError",
    # services
    "generate_order_no",
    "create_order_from_cart",
    "get_order_for_user",
    "list_user_orders",
    "cancel_order",
    "mark_order_paid",
    "ship_order",
]
