"""
Cas d'usage admin: suivi et expédition des commandes boutique.
"""
from typing import Any, Dict, Optional

from backend.orders import repository as orders_repository
from backend.orders import service as orders_service

# module backend.admin.service

def list_orders(page: int = 1, limit: int = 30, status: Optional[str] = None, order_no: Optional[str] = None) -> Dict[str, Any]:
    """Page de commandes + total (mêmes filtres), email acheteur aplati."""
    rows = orders_repository.list_orders(page=page, limit=limit, status=status, order_no=order_no)
    items = []
    for row in rows:
        buyer = row.get("user") or {}
        items.append({**row, "user_email": buyer.get("email") if isinstance(buyer, dict) else None})
    total = orders_repository.count_orders(status=status, order_no=order_no)
    return {"items": items, "total": total, "page": page, "limit": limit}


def ship_order(order_no: str, carrier: str, tracking_number: str) -> Dict[str, Any]:
    return orders_service.ship_order(order_no, carrier, tracking_number)
