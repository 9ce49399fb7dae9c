"""
Module 'payments' (feature-first): point d'entrée public.
Réunit token de passage A -> B, logique panier, metadata Stripe et client Stripe.
Les cas d'usage (backend.payments.service) s'importent directement: ils dépendent de backend.orders.
"""

from .cart import aggregate_quantities, price_cents_from_sku, make_metadata, to_line_items
from .metadata import extract_metadata_from_session, extract_session
from .stripe_client import require_stripe, create_session, get_session, parse_event
from .token import (
    TOKEN_EXPIRY_MS,
    PaymentTokenConfigError,
    PaymentTokenPayload,
    InMemoryReplayGuard,
    RedisReplayGuard,
    generate_payment_token,
    verify_payment_token,
    build_payment_url,
)

__all__ = [
    # cart
    "aggregate_quantities",
    "price_cents_from_sku",
    "make_metadata",
    "to_line_items",
    # metadata
    "extract_metadata_from_session",
    "extract_session",
    # stripe
    "require_stripe",
    "create_session",
    "get_session",
    "parse_event",
    # token
    "TOKEN_EXPIRY_MS",
    "PaymentTokenConfigError",
    "PaymentTokenPayload",
    "InMemoryReplayGuard",
    "RedisReplayGuard",
    "generate_payment_token",
    "verify_payment_token",
    "build_payment_url",
]
