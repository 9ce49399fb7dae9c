"""
Protection CSRF « double submit »: cookie csrf_token + en-tête X-CSRF-Token.
Seules les requêtes mutatives portant un cookie de session sont vérifiées;
les endpoints appelés par des tiers (webhook Stripe, page /pay du site B) sont exemptés.
"""
import secrets
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from backend.config import COOKIE_SECURE
from backend.utils.security import COOKIE_NAME

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_EXEMPT_PATHS = {
    "/api/v1/payments/webhook",
    "/api/payment/process",
}

# module backend.utils.csrf
def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"

def is_csrf_exempt(path: str) -> bool:
    return _normalize(path) in {_normalize(p) for p in CSRF_EXEMPT_PATHS}

def get_or_create_csrf_token(request: Request) -> str:
    """Renvoie le token CSRF existant (cookie) ou en crée un nouveau."""
    return request.cookies.get(CSRF_COOKIE_NAME) or secrets.token_urlsafe(32)

def attach_csrf_cookie_if_missing(response: Response, request: Request, token: str) -> None:
    if not request.cookies.get(CSRF_COOKIE_NAME):
        response.set_cookie(
            key=CSRF_COOKIE_NAME,
            value=token,
            httponly=False,  # lu par le front pour renvoyer l'en-tête
            secure=COOKIE_SECURE,
            samesite="Lax",
            max_age=60 * 60,
            path="/",
        )

def register_csrf_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def csrf_protection(request: Request, call_next):
        is_state_changing = request.method.upper() in ("POST", "PUT", "PATCH", "DELETE")
        has_session = bool(request.cookies.get(COOKIE_NAME))
        token = get_or_create_csrf_token(request)

        if is_state_changing and has_session and not is_csrf_exempt(request.url.path):
            header_token = request.headers.get(CSRF_HEADER_NAME, "")
            cookie_token = request.cookies.get(CSRF_COOKIE_NAME, "")
            if not cookie_token or not header_token or not secrets.compare_digest(header_token, cookie_token):
                return JSONResponse(status_code=403, content={"detail": "CSRF verification failed"})

        response = await call_next(request)
        attach_csrf_cookie_if_missing(response, request, token)
        return response

def csrf_protect(
    request: Request,
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER_NAME),
) -> None:
    """
    Dépendance pour les routes sensibles: l'en-tête X-CSRF-Token doit égaler le cookie csrf_token.
    """
    if is_csrf_exempt(request.url.path):
        return
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    if not cookie_token or not x_csrf_token:
        raise HTTPException(status_code=403, detail="CSRF token missing")
    if not secrets.compare_digest(str(cookie_token), str(x_csrf_token)):
        raise HTTPException(status_code=403, detail="CSRF token invalid")
