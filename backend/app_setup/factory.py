"""
Factory d'application pour les entrypoints (backend.app, backend.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_headers_middleware, register_no_cache_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers
from backend.utils.csrf import register_csrf_middleware

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base, CSRF, en-têtes de sécurité, no-cache
      - gestionnaires d'exceptions
      - tous les routers (boutique, paiement, devises, admin, health)
    """
    app = FastAPI(title="Boutique API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_csrf_middleware(app)
    register_security_headers_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
