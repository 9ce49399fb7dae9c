"""
Clients Supabase partagés (lazy):
- get_supabase: clé anon (auth.get_user, lectures catalogue SKU)
- get_service_supabase: clé service-role (écritures commandes, contourne la RLS)
"""
from typing import Optional
from supabase import create_client, Client

from backend import config

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def get_supabase() -> Client:
    global _supabase
    if _supabase is None:
        _supabase = create_client(config.SUPABASE_URL, config.SUPABASE_ANON)
    return _supabase

def get_service_supabase() -> Client:
    global _service_supabase
    if not config.SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
    return _service_supabase
