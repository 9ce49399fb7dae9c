"""
Lecture des métadonnées Stripe (order_id, order_no, type) depuis un event ou une session.
"""
from typing import Any, Dict

# module backend.payments.metadata
def extract_metadata_from_session(session: Dict[str, Any]) -> Dict[str, str]:
    """
    Extrait {order_id, order_no, type} depuis une session Stripe Checkout.
    - Tolérant: clés absentes -> chaînes vides.
    """
    meta = (session.get("metadata") or {}) if isinstance(session, dict) else {}
    return {
        "order_id": str(meta.get("order_id") or ""),
        "order_no": str(meta.get("order_no") or ""),
        "type": str(meta.get("type") or ""),
    }

def extract_session(event: Dict[str, Any]) -> Dict[str, Any]:
    """Objet session contenu dans un event webhook (event.data.object)."""
    if not isinstance(event, dict):
        return {}
    obj = (event.get("data") or {}).get("object") or {}
    return dict(obj) if isinstance(obj, dict) else {}
