from typing import Any, Dict
from urllib.parse import urlparse
import socket

from backend import config
from backend.currency import rates as currency_rates
import backend.infra.supabase_client as supabase_client
from backend.orders.repository import ORDER_ITEM_TABLE, ORDER_TABLE, SKU_TABLE

# module backend.health.service

def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    parsed = urlparse(config.SUPABASE_URL) if config.SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except OSError as e:
            dns_ok = False
            dns_error = str(e)

    info: Dict[str, Any] = {
        "supabase_url": config.SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = supabase_client.get_supabase()
        for t in (ORDER_TABLE, ORDER_ITEM_TABLE, SKU_TABLE):
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info

def health_rates_info() -> Dict[str, Any]:
    """État du cache de taux (déclenche au besoin un chargement: ne lève jamais)."""
    service = currency_rates.get_rate_service()
    snapshot = service.get_exchange_rates()
    return {
        "base": snapshot.base,
        "updatedAt": snapshot.updated_at.isoformat(),
        "expired": service.is_rates_expired(snapshot),
        "source": service.last_source,
        "currencies": len(snapshot.rates),
        "persistent_store": service.store is not None,
    }
