# module backend.orders.models
"""Statuts et erreurs métier des commandes boutique."""
from enum import Enum


class ShopOrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING_SHIPMENT = "pending_shipment"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


class OrderStateError(ValueError):
    """Transition de statut interdite (ex: expédier une commande non payée)."""
