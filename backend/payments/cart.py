"""
Logique panier pure (pas de Stripe, pas de DB).
Tous les montants sont en centimes.
"""
from typing import Any, Dict, List
from fastapi import HTTPException

# module backend.payments.cart
def aggregate_quantities(items: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Agrège un panier brut [{sku_id, quantity}, ...] en {sku_id: total_quantity}.
    - Accepte aussi la clé "id" (ancien format du panier côté front).
    - Ignore les lignes invalides (id vide, quantity <= 0 ou non numérique).
    - Soulève HTTPException(400) si aucune ligne valide n'est présente.
    """
    quantities: Dict[str, int] = {}
    for it in items or []:
        sku_id = str(it.get("sku_id") or it.get("id") or "").strip()
        try:
            qty = int(it.get("quantity") or 0)
        except (TypeError, ValueError):
            qty = 0
        if not sku_id or qty <= 0:
            continue
        quantities[sku_id] = quantities.get(sku_id, 0) + qty
    if not quantities:
        raise HTTPException(status_code=400, detail="Panier invalide")
    return quantities

def price_cents_from_sku(sku: Dict[str, Any]) -> int:
    """Prix unitaire en centimes; 0 si absent ou illisible."""
    try:
        return int(sku.get("price") or 0)
    except (TypeError, ValueError):
        return 0

def to_line_items(order_items: List[Dict[str, Any]], currency: str) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe à partir des lignes d'une commande.
    - unit_amount repris tel quel (déjà en centimes), devise en minuscules.
    - Ignore les lignes à quantité ou prix non valides.
    - Soulève HTTPException(400) si aucune ligne valide n'est construite.
    """
    line_items: List[Dict[str, Any]] = []
    for item in order_items or []:
        qty = int(item.get("quantity") or 0)
        unit_amount = int(item.get("unit_price") or 0)
        if qty <= 0 or unit_amount <= 0:
            continue
        product_data: Dict[str, Any] = {"name": item.get("product_name") or "Article"}
        if item.get("product_image"):
            product_data["images"] = [item["product_image"]]
        line_items.append({
            "quantity": qty,
            "price_data": {
                "currency": (item.get("currency") or currency or "usd").lower(),
                "unit_amount": unit_amount,
                "product_data": product_data,
            },
        })
    if not line_items:
        raise HTTPException(status_code=400, detail="Aucun article valide")
    return line_items

def make_metadata(order: Dict[str, Any], order_type: str = "shop") -> Dict[str, str]:
    """Métadonnées Stripe reliant la session à la commande boutique."""
    return {
        "order_id": str(order.get("id") or ""),
        "order_no": str(order.get("order_no") or ""),
        "user_id": str(order.get("user_id") or ""),
        "type": order_type,
    }
