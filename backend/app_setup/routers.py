"""
Registre central des routers.
- Boutique (site A): orders, currency
- Paiement (site B): /api/payment/process, webhook Stripe
- Admin: admin_router
- Health: health_router
"""
from fastapi import FastAPI
from backend.orders import views as orders_views
from backend.currency import views as currency_views
from backend.payments import views as payments_views
from backend.admin.views import router as admin_router
from backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # Site A
    app.include_router(orders_views.router)
    app.include_router(currency_views.router)
    # Site B
    app.include_router(payments_views.process_router)
    app.include_router(payments_views.router)
    # Admin
    app.include_router(admin_router)
    # Health & monitoring
    app.include_router(health_router)
