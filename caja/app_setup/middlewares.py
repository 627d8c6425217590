"""
Middlewares transverses du service de caisse.

- register_basic_middlewares: CORS, TrustedHost et en-têtes X-Forwarded-* du proxy.
- register_security_middleware: CSRF (double-submit) pour les sessions par cookie,
  en-têtes de sécurité et CSP.
- register_no_cache_middleware: l'état d'un terminal et les reçus ne sont jamais mis en cache.
- register_force_https_middleware: redirection HTTPS derrière un proxy.
L'ordre compte: le middleware HTTPS est ajouté en dernier pour s'exécuter en premier.
"""
import secrets
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
from caja.config import ALLOWED_HOSTS, COOKIE_SECURE, CORS_ORIGINS, RECEIPT_PATH, SUPABASE_URL
from caja.utils.security import COOKIE_NAME

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
STATE_CHANGING_METHODS = ("POST", "PUT", "PATCH", "DELETE")
NO_CACHE_PREFIXES = ("/api/v1/pos", "/api/v1/receipts", RECEIPT_PATH)
DOCS_CDNS = "https://cdn.jsdelivr.net https://unpkg.com"

STATIC_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    # camera: lecteur de codes-barres par webcam sur le terminal
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(self)",
}


def content_security_policy() -> str:
    """Le reçu public n'utilise que des styles inline et une image data: (QR)."""
    connect = "'self'" + (f" {SUPABASE_URL}" if SUPABASE_URL else "")
    return "; ".join(
        [
            "default-src 'self'",
            "base-uri 'self'",
            "object-src 'none'",
            "frame-ancestors 'none'",
            "img-src 'self' data: blob: https:",
            f"style-src 'self' 'unsafe-inline' {DOCS_CDNS}",
            f"script-src 'self' 'unsafe-inline' {DOCS_CDNS}",
            f"connect-src {connect}",
        ]
    )


def csrf_rejected(request: Request) -> bool:
    """
    Vrai si une requête mutative authentifiée par cookie n'a pas un X-CSRF-Token égal au cookie csrf_token.
    Les terminaux authentifiés par Bearer ne portent pas de cookie de session et ne sont pas concernés.
    """
    if request.method.upper() not in STATE_CHANGING_METHODS or not request.cookies.get(COOKIE_NAME):
        return False
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME) or ""
    header_token = request.headers.get(CSRF_HEADER_NAME) or ""
    return not (cookie_token and header_token and secrets.compare_digest(header_token, cookie_token))


def register_basic_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    hosts = ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=hosts)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


def register_security_middleware(app: FastAPI) -> None:
    csp = content_security_policy()

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        if csrf_rejected(request):
            return JSONResponse(status_code=403, content={"detail": "CSRF verification failed"})

        response: Response = await call_next(request)
        for name, value in STATIC_SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        response.headers["Content-Security-Policy"] = csp

        new_csrf: Optional[str] = None if request.cookies.get(CSRF_COOKIE_NAME) else secrets.token_urlsafe(32)
        if new_csrf:
            response.set_cookie(
                key=CSRF_COOKIE_NAME,
                value=new_csrf,
                httponly=False,
                secure=COOKIE_SECURE,
                samesite="Lax",
                max_age=60 * 60,
                path="/",
            )
        return response


def register_no_cache_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def no_cache_for_pos(request: Request, call_next):
        response = await call_next(request)
        if request.method == "GET" and request.url.path.rstrip("/").startswith(NO_CACHE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response


def register_force_https_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def force_https(request: Request, call_next):
        if request.headers.get("x-forwarded-proto") == "http":
            return RedirectResponse(str(request.url.replace(scheme="https")), status_code=301)
        return await call_next(request)
