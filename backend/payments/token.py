"""
Token de passage site principal (A) -> site de paiement (B).

Format: base64url(JSON payload) + "." + hex(HMAC-SHA256(payload encodé, secret)).
- Le payload ne transporte que la référence de commande (orderId, orderNo) et l'expiration (ms).
- Durée de validité fixe: 15 minutes.
- Pas de nonce: un token peut être rejoué tant qu'il n'a pas expiré, sauf si un ReplayGuard
  est fourni (PAYMENT_TOKEN_SINGLE_USE=1).
- verify_payment_token ne lève jamais: tout échec est journalisé puis renvoie None.
"""
import base64
import hashlib
import hmac
import json
import logging
import time
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from backend import config

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_MS = 15 * 60 * 1000


class PaymentTokenConfigError(RuntimeError):
    """PAYMENT_TOKEN_SECRET absent: erreur de configuration, pas une erreur utilisateur."""


@dataclass(frozen=True)
class PaymentTokenPayload:
    order_id: str
    order_no: str
    exp: int

    def to_wire(self) -> Dict[str, Any]:
        return {"orderId": self.order_id, "orderNo": self.order_no, "exp": self.exp}

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "PaymentTokenPayload":
        order_id = data.get("orderId")
        order_no = data.get("orderNo")
        exp = data.get("exp")
        if not isinstance(order_id, str) or not isinstance(order_no, str):
            raise ValueError("orderId/orderNo manquants")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise ValueError("exp invalide")
        return cls(order_id=order_id, order_no=order_no, exp=int(exp))


class ReplayGuard(Protocol):
    def claim(self, key: str, exp_ms: int, now_ms: int) -> bool:
        """Retourne True à la première présentation du token, False ensuite."""
        ...

    def release(self, key: str) -> None:
        """Rend le token de nouveau utilisable (échec après consommation)."""
        ...


class InMemoryReplayGuard:
    """Anti-rejeu local au process (signature -> expiration)."""

    def __init__(self) -> None:
        self._seen: Dict[str, int] = {}

    def claim(self, key: str, exp_ms: int, now_ms: int) -> bool:
        self._gc(now_ms)
        if key in self._seen:
            return False
        self._seen[key] = exp_ms
        return True

    def release(self, key: str) -> None:
        self._seen.pop(key, None)

    def _gc(self, now_ms: int) -> None:
        expired = [k for k, v in self._seen.items() if v <= now_ms]
        for k in expired:
            self._seen.pop(k, None)


class RedisReplayGuard:
    """Anti-rejeu partagé entre workers: SET NX avec expiration alignée sur le token."""

    def __init__(self, client, prefix: str = "payment_token:used:") -> None:
        self._client = client
        self._prefix = prefix

    def claim(self, key: str, exp_ms: int, now_ms: int) -> bool:
        ttl_ms = max(exp_ms - now_ms, 1)
        return bool(self._client.set(self._prefix + key, "1", nx=True, px=ttl_ms))

    def release(self, key: str) -> None:
        self._client.delete(self._prefix + key)


def token_replay_key(token: str) -> str:
    """Clé anti-rejeu d'un token: sa signature."""
    return (token or "").rpartition(".")[2]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _secret_or_none(secret: Optional[str]) -> Optional[str]:
    value = secret if secret is not None else config.PAYMENT_TOKEN_SECRET
    return value or None


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    pad = len(value) % 4
    padded = value + ("=" * (4 - pad) if pad else "")
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _sign(data: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_payment_token(
    order_id: str,
    order_no: str,
    *,
    secret: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> str:
    """
    Génère le token de paiement (site A).
    - exp = maintenant + 15 minutes (ms)
    - Lève PaymentTokenConfigError si aucun secret n'est configuré.
    """
    key = _secret_or_none(secret)
    if not key:
        raise PaymentTokenConfigError("PAYMENT_TOKEN_SECRET is not configured")

    issued = now_ms if now_ms is not None else _now_ms()
    payload = PaymentTokenPayload(order_id=str(order_id), order_no=str(order_no), exp=issued + TOKEN_EXPIRY_MS)
    encoded = _b64url_encode(json.dumps(payload.to_wire(), separators=(",", ":")).encode("utf-8"))
    return f"{encoded}.{_sign(encoded, key)}"


def verify_payment_token(
    token: str,
    *,
    secret: Optional[str] = None,
    now_ms: Optional[int] = None,
    replay_guard: Optional[ReplayGuard] = None,
) -> Optional[PaymentTokenPayload]:
    """
    Vérifie le token de paiement (site B).
    Retourne le payload, ou None si: secret absent, format invalide, signature fausse,
    JSON illisible, token expiré ou déjà consommé (si replay_guard).
    La cause n'est visible que dans les logs.
    """
    key = _secret_or_none(secret)
    if not key:
        logger.error("PAYMENT_TOKEN_SECRET is not configured")
        return None

    try:
        parts = (token or "").split(".")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            logger.warning("Payment token malformed")
            return None
        encoded, signature = parts

        expected = _sign(encoded, key)
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Payment token signature mismatch")
            return None

        payload = PaymentTokenPayload.from_wire(json.loads(_b64url_decode(encoded).decode("utf-8")))

        now = now_ms if now_ms is not None else _now_ms()
        if now > payload.exp:
            logger.warning("Payment token expired order_no=%s", payload.order_no)
            return None

        if replay_guard is not None and not replay_guard.claim(token_replay_key(token), payload.exp, now):
            logger.warning("Payment token replayed order_no=%s", payload.order_no)
            return None

        return payload
    except Exception:
        logger.exception("Payment token verification failed")
        return None


def build_payment_url(token: str, *, order_type: str = "shop", base_url: Optional[str] = None) -> str:
    """URL de redirection vers la page /pay du site de paiement."""
    root = (base_url or config.PAYMENT_SITE_URL).rstrip("/")
    query = urllib.parse.urlencode({"token": token, "type": order_type})
    return f"{root}/pay?{query}"
