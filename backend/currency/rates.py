"""
Service de taux de change.

Ordre de résolution de get_exchange_rates():
  1) cache mémoire du process (TTL 1h)
  2) cache persistant Redis sous la clé "exchange_rates" (TTL 1h sur updatedAt)
  3) API distante (exchangerate-api si clé configurée, sinon open.er-api.com)
  4) table statique FALLBACK_RATES
Ne lève jamais: au pire, des taux approximatifs sont renvoyés.
Pas de dédoublonnage des appels concurrents: deux requêtes simultanées peuvent
déclencher deux fetchs dans la même fenêtre (fetch idempotent).
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
import redis
from babel.dates import format_datetime

from backend import config
from backend.currency.config import BASE_CURRENCY, get_intl_locale

logger = logging.getLogger(__name__)

CACHE_KEY = "exchange_rates"
CACHE_TTL = timedelta(hours=1)

# Taux approximatifs (unités par 1 USD), utilisés quand l'API est indisponible
FALLBACK_RATES: Dict[str, float] = {
    "USD": 1,
    "CNY": 7.24,
    "JPY": 149.5,
    "KRW": 1320,
    "EUR": 0.92,
    "GBP": 0.79,
    "BRL": 4.97,
    "RUB": 92.5,
    "AED": 3.67,
    "INR": 83.2,
    "THB": 35.5,
    "VND": 24500,
    "IDR": 15700,
    "TRY": 32.1,
    "PLN": 4.02,
    "MYR": 4.72,
    "SGD": 1.34,
    "HKD": 7.82,
    "TWD": 31.8,
    "AUD": 1.53,
    "CAD": 1.36,
    "CHF": 0.88,
    "SEK": 10.5,
    "NOK": 10.7,
    "DKK": 6.87,
    "MXN": 17.2,
    "ZAR": 18.9,
    "PHP": 56.1,
    "NZD": 1.64,
    "SAR": 3.75,
}

FALLBACK_BASE = "USD"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExchangeRates:
    base: str
    rates: Dict[str, float] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"base": self.base, "rates": dict(self.rates), "updatedAt": self.updated_at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExchangeRates":
        updated_at = datetime.fromisoformat(str(data["updatedAt"]))
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return cls(
            base=str(data["base"]),
            rates={str(k): float(v) for k, v in (data.get("rates") or {}).items()},
            updated_at=updated_at,
        )


def fallback_rates_for(base: str, updated_at: Optional[datetime] = None) -> ExchangeRates:
    """
    Table de secours exprimée dans la devise de base demandée (FALLBACK_RATES est cotée en USD).
    Base absente de la table: table renvoyée telle quelle, avec base USD.
    """
    code = (base or "").upper()
    pivot = FALLBACK_RATES.get(code)
    if not pivot:
        logger.warning("No fallback rate for base=%s, using %s table", code, FALLBACK_BASE)
        code, pivot = FALLBACK_BASE, 1
    rates = {k: v / pivot for k, v in FALLBACK_RATES.items()}
    rates[code] = 1.0
    return ExchangeRates(base=code, rates=rates, updated_at=updated_at or utc_now())


class RateFetcher(Protocol):
    def fetch(self, base: str) -> Optional[Dict[str, float]]:
        ...


def _clean_rates(raw: Any) -> Dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    cleaned: Dict[str, float] = {}
    for code, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        cleaned[str(code).upper()] = float(value)
    return cleaned


class HttpRateFetcher:
    """Client HTTP (httpx) vers l'API de taux de change."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        open_api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.EXCHANGE_RATE_API_KEY
        self.api_url = (api_url or config.EXCHANGE_RATE_API_URL).rstrip("/")
        self.open_api_url = (open_api_url or config.EXCHANGE_RATE_OPEN_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.EXCHANGE_RATE_TIMEOUT
        self._client = client

    def url_for(self, base: str) -> str:
        if self.api_key:
            return f"{self.api_url}/{self.api_key}/latest/{base}"
        return f"{self.open_api_url}/latest/{base}"

    def fetch(self, base: str) -> Optional[Dict[str, float]]:
        url = self.url_for(base)
        try:
            if self._client is not None:
                resp = self._client.get(url, timeout=self.timeout)
            else:
                resp = httpx.get(url, timeout=self.timeout)
            if not (200 <= resp.status_code < 300):
                logger.error("Exchange rate API error: status=%s", resp.status_code)
                return None
            data = resp.json()
        except Exception:
            logger.exception("Failed to fetch exchange rates")
            return None

        if not isinstance(data, dict):
            return None
        if data.get("result") == "success" or data.get("rates"):
            rates = _clean_rates(data.get("conversion_rates") or data.get("rates"))
            return rates or None
        logger.error("Exchange rate API unexpected payload: result=%s", data.get("result"))
        return None


class ExchangeRateService:
    """
    Cache explicite des taux, avec fetcher, store et horloge injectés.
    - store: client Redis synchrone (ou compatible get/set/delete), optionnel
    - clock: callable renvoyant un datetime UTC aware
    """

    def __init__(
        self,
        fetcher: RateFetcher,
        *,
        store=None,
        clock: Optional[Callable[[], datetime]] = None,
        ttl: timedelta = CACHE_TTL,
        base: str = BASE_CURRENCY,
        cache_key: str = CACHE_KEY,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.clock = clock or utc_now
        self.ttl = ttl
        self.base = base
        self.cache_key = cache_key
        self._memory: Optional[ExchangeRates] = None
        self._memory_time: Optional[datetime] = None
        self.last_source: Optional[str] = None

    # --- cache mémoire ---
    def _memory_hit(self, now: datetime) -> Optional[ExchangeRates]:
        if self._memory is not None and self._memory_time is not None and now - self._memory_time < self.ttl:
            return self._memory
        return None

    def _remember(self, rates: ExchangeRates, now: datetime) -> None:
        self._memory = rates
        self._memory_time = now

    # --- cache persistant ---
    def _store_get(self, now: datetime) -> Optional[ExchangeRates]:
        if self.store is None:
            return None
        try:
            raw = self.store.get(self.cache_key)
            if not raw:
                return None
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            cached = ExchangeRates.from_dict(json.loads(raw))
        except Exception:
            logger.exception("exchange rates store read failed key=%s", self.cache_key)
            return None
        if now - cached.updated_at > self.ttl:
            self._store_delete()
            return None
        return cached

    def _store_set(self, rates: ExchangeRates) -> None:
        if self.store is None:
            return
        try:
            self.store.set(self.cache_key, json.dumps(rates.to_dict()), ex=int(self.ttl.total_seconds()))
        except Exception:
            logger.exception("exchange rates store write failed key=%s", self.cache_key)

    def _store_delete(self) -> None:
        if self.store is None:
            return
        try:
            self.store.delete(self.cache_key)
        except Exception:
            logger.exception("exchange rates store delete failed key=%s", self.cache_key)

    # --- API publique ---
    def get_exchange_rates(self) -> ExchangeRates:
        now = self.clock()

        cached = self._memory_hit(now)
        if cached is not None:
            self.last_source = "memory"
            return cached

        stored = self._store_get(now)
        if stored is not None:
            self._remember(stored, now)
            self.last_source = "store"
            return stored

        try:
            fetched = self.fetcher.fetch(self.base)
        except Exception:
            logger.exception("exchange rates fetch failed base=%s", self.base)
            fetched = None
        if fetched:
            rates = ExchangeRates(base=self.base, rates=fetched, updated_at=now)
            self._remember(rates, now)
            self._store_set(rates)
            self.last_source = "api"
            return rates

        logger.warning("Using fallback exchange rates base=%s", self.base)
        fallback = fallback_rates_for(self.base, now)
        self._remember(fallback, now)
        self.last_source = "fallback"
        return fallback

    def get_exchange_rate(self, currency: str) -> float:
        code = (currency or "").upper()
        if code == self.base:
            return 1.0
        return self.get_exchange_rates().rates.get(code) or 1.0

    def refresh_exchange_rates(self) -> ExchangeRates:
        self._memory = None
        self._memory_time = None
        self._store_delete()
        return self.get_exchange_rates()

    def is_rates_expired(self, rates: ExchangeRates) -> bool:
        return self.clock() - rates.updated_at > self.ttl


def is_rates_expired(rates: ExchangeRates, now: Optional[datetime] = None) -> bool:
    return (now or utc_now()) - rates.updated_at > CACHE_TTL


def format_rates_update_time(rates: ExchangeRates, locale: str = "en") -> str:
    """Date de mise à jour des taux, format court localisé (Babel)."""
    return format_datetime(rates.updated_at, format="short", locale=get_intl_locale(locale))


# --- Instance par défaut (composée depuis la configuration) ---
_service: Optional[ExchangeRateService] = None


def _build_default_store():
    if not config.RATES_REDIS_URL:
        return None
    try:
        return redis.from_url(config.RATES_REDIS_URL, encoding="utf-8", decode_responses=True)
    except Exception:
        logger.exception("exchange rates: invalid RATES_REDIS_URL, memory cache only")
        return None


def get_rate_service() -> ExchangeRateService:
    global _service
    if _service is None:
        _service = ExchangeRateService(HttpRateFetcher(), store=_build_default_store())
    return _service


def reset_rate_service(service: Optional[ExchangeRateService] = None) -> None:
    """Remplace (ou réinitialise) l'instance par défaut; utile pour les tests."""
    global _service
    _service = service


def get_exchange_rates() -> ExchangeRates:
    return get_rate_service().get_exchange_rates()


def get_exchange_rate(currency: str) -> float:
    return get_rate_service().get_exchange_rate(currency)


def refresh_exchange_rates() -> ExchangeRates:
    return get_rate_service().refresh_exchange_rates()
