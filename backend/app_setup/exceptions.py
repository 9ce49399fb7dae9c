"""
Gestionnaires d'exceptions utilisés par la factory.
- HTTPException: JSON {"detail": ...} (les en-têtes éventuels, ex. Retry-After, sont conservés)
- OrderStateError non interceptée par une vue: 409
- MissingRateError (mode strict): 400
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from backend.currency.price import MissingRateError
from backend.orders.models import OrderStateError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_json(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(OrderStateError)
    async def order_state_conflict(request: Request, exc: OrderStateError):
        logger.info("order state conflict path=%s: %s", request.url.path, exc)
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(MissingRateError)
    async def missing_rate(request: Request, exc: MissingRateError):
        return JSONResponse(status_code=400, content={"detail": str(exc), "currency": exc.currency})
