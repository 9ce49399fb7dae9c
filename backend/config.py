# backend.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, token de paiement)
- Paramètres devises: devise pivot, API de taux de change, cache Redis
- Deux rôles de déploiement: site principal (A) et site de paiement (B)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = _flag("COOKIE_SECURE")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Sites: A = boutique (pas de clé Stripe), B = paiement (détient STRIPE_SECRET_KEY)
MAIN_SITE_URL = _clean_env(os.getenv("MAIN_SITE_URL") or "http://localhost:8000").rstrip("/")
PAYMENT_SITE_URL = _clean_env(os.getenv("PAYMENT_SITE_URL") or MAIN_SITE_URL).rstrip("/")

# Token de passage A -> B (HMAC-SHA256, secret partagé entre les deux sites)
PAYMENT_TOKEN_SECRET = _clean_env(os.getenv("PAYMENT_TOKEN_SECRET") or "")
# Usage unique du token (anti-rejeu); désactivé par défaut
PAYMENT_TOKEN_SINGLE_USE = _flag("PAYMENT_TOKEN_SINGLE_USE")

# Stripe: clés et secret webhook (site B uniquement)
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

# Pages de retour du checkout (sur le site principal)
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/shop/order/{order_no}?payment=success")
CHECKOUT_CANCEL_PATH = os.getenv("CHECKOUT_CANCEL_PATH", "/shop/order/{order_no}?payment=cancel")

# Devises et taux de change
BASE_CURRENCY = _clean_env(os.getenv("BASE_CURRENCY") or "USD").upper()
EXCHANGE_RATE_API_KEY = _clean_env(os.getenv("EXCHANGE_RATE_API_KEY") or "")
EXCHANGE_RATE_API_URL = _clean_env(os.getenv("EXCHANGE_RATE_API_URL") or "https://v6.exchangerate-api.com/v6").rstrip("/")
EXCHANGE_RATE_OPEN_API_URL = _clean_env(os.getenv("EXCHANGE_RATE_OPEN_API_URL") or "https://open.er-api.com/v6").rstrip("/")
EXCHANGE_RATE_TIMEOUT = float(os.getenv("EXCHANGE_RATE_TIMEOUT", "10"))
# Cache persistant des taux (Redis); vide => cache mémoire uniquement
RATES_REDIS_URL = _clean_env(os.getenv("RATES_REDIS_URL") or "")
# Taux manquant: False => prix non converti (dégradé), True => MissingRateError
CURRENCY_STRICT_RATES = _flag("CURRENCY_STRICT_RATES")

# Rate limiting (fastapi-limiter)
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")
