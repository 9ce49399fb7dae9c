"""
Accès aux données pour la feature 'orders' (tables shop_order, shop_order_item, product_sku).
Les erreurs Supabase sont journalisées; les fonctions renvoient None / [] / 0 en cas d'échec.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

import backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ORDER_TABLE = "shop_order"
ORDER_ITEM_TABLE = "shop_order_item"
SKU_TABLE = "product_sku"


def _first_row(res) -> Optional[dict]:
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data
    return None


# --- SKUs ---
def fetch_skus_by_ids(ids: Iterable[str]) -> List[dict]:
    """SKUs (prix en centimes, devise, stock) avec le titre produit joint."""
    id_list = [str(i) for i in ids if i]
    if not id_list:
        return []
    try:
        res = (
            supabase_client.get_supabase()
            .table(SKU_TABLE)
            .select("*, product(id, title, image)")
            .in_("id", id_list)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.fetch_skus_by_ids failed ids=%s", id_list)
        return []


def get_skus_map(ids: Iterable[str]) -> Dict[str, dict]:
    return {str(s.get("id")): s for s in fetch_skus_by_ids(ids)}


# --- Écritures (service-role) ---
def insert_order(data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = get_service_client().table(ORDER_TABLE).insert(data).execute()
        return _first_row(res) or dict(data)
    except Exception:
        logger.exception("orders.repository.insert_order failed order_no=%s", data.get("order_no"))
        return None


def insert_order_items(items: List[Dict[str, Any]]) -> List[dict]:
    if not items:
        return []
    try:
        res = get_service_client().table(ORDER_ITEM_TABLE).insert(items).execute()
        rows = getattr(res, "data", None)
        return rows if isinstance(rows, list) and rows else list(items)
    except Exception:
        logger.exception("orders.repository.insert_order_items failed order_id=%s", items[0].get("order_id"))
        return []


def update_order(order_id: str, data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = get_service_client().table(ORDER_TABLE).update(data).eq("id", order_id).execute()
        return _first_row(res)
    except Exception:
        logger.exception("orders.repository.update_order failed id=%s data=%s", order_id, data)
        return None


def update_order_by_no(order_no: str, data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = get_service_client().table(ORDER_TABLE).update(data).eq("order_no", order_no).execute()
        return _first_row(res)
    except Exception:
        logger.exception("orders.repository.update_order_by_no failed order_no=%s data=%s", order_no, data)
        return None


def delete_order(order_id: str) -> bool:
    try:
        get_service_client().table(ORDER_TABLE).delete().eq("id", order_id).execute()
        return True
    except Exception:
        logger.exception("orders.repository.delete_order failed id=%s", order_id)
        return False


# --- Lectures ---
def get_order_by_id(order_id: str) -> Optional[dict]:
    if not order_id:
        return None
    try:
        res = get_service_client().table(ORDER_TABLE).select("*").eq("id", order_id).limit(1).execute()
        return _first_row(res)
    except Exception:
        logger.exception("orders.repository.get_order_by_id failed id=%s", order_id)
        return None


def get_order_by_no(order_no: str) -> Optional[dict]:
    if not order_no:
        return None
    try:
        res = get_service_client().table(ORDER_TABLE).select("*").eq("order_no", order_no).limit(1).execute()
        return _first_row(res)
    except Exception:
        logger.exception("orders.repository.get_order_by_no failed order_no=%s", order_no)
        return None


def get_order_items(order_id: str) -> List[dict]:
    try:
        res = get_service_client().table(ORDER_ITEM_TABLE).select("*").eq("order_id", order_id).execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.get_order_items failed order_id=%s", order_id)
        return []


def list_user_orders(user_id: str, page: int = 1, limit: int = 20, status: Optional[str] = None) -> List[dict]:
    """Commandes de l'utilisateur (hors supprimées), les plus récentes d'abord."""
    if not user_id:
        return []
    offset = (max(page, 1) - 1) * limit
    try:
        query = (
            get_service_client()
            .table(ORDER_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .is_("deleted_at", "null")
        )
        if status:
            query = query.eq("status", status)
        res = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        return []


def list_orders(page: int = 1, limit: int = 30, status: Optional[str] = None, order_no: Optional[str] = None) -> List[dict]:
    """Commandes pour l'admin, avec l'email de l'acheteur joint."""
    offset = (max(page, 1) - 1) * limit
    try:
        query = (
            get_service_client()
            .table(ORDER_TABLE)
            .select("*, user(id, name, email)")
            .is_("deleted_at", "null")
        )
        if status:
            query = query.eq("status", status)
        if order_no:
            query = query.like("order_no", f"%{order_no}%")
        res = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_orders failed status=%s order_no=%s", status, order_no)
        return []


def count_orders(status: Optional[str] = None, order_no: Optional[str] = None) -> int:
    try:
        query = get_service_client().table(ORDER_TABLE).select("id", count="exact").is_("deleted_at", "null")
        if status:
            query = query.eq("status", status)
        if order_no:
            query = query.like("order_no", f"%{order_no}%")
        res = query.execute()
        if getattr(res, "count", None) is not None:
            return int(res.count)
        return len(res.data or [])
    except Exception:
        logger.exception("orders.repository.count_orders failed")
        return 0


def get_service_client():
    return supabase_client.get_service_supabase()
