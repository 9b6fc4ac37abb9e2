"""
Middleware and request helpers for the API.
"""

from __future__ import annotations

import secrets

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from ecosort.config import settings

# JSON bodies only; report photos arrive as URLs
MAX_REQUEST_BYTES = 1_000_000

STATIC_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # The mobile client attaches the resident's location to reports
    "Permissions-Policy": "geolocation=(self), microphone=(), camera=()",
}

# Swagger UI and ReDoc load their bundles from jsDelivr
_DOCS_CDN = "https://cdn.jsdelivr.net"


def get_client_ip(request: Request) -> str:
    """
    Address used for rate limiting and request logs.

    Forwarded headers are honoured only when proxy trust is switched on and
    the direct peer is one of the configured proxies.
    """
    peer = request.client.host if request.client else ""
    if not settings.trust_proxy_headers:
        return peer

    proxies = {ip.strip() for ip in settings.trusted_proxy_ips if ip.strip()}
    if "*" not in proxies and peer not in proxies:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return forwarded or request.headers.get("x-real-ip", "").strip() or peer


def content_security_policy(nonce: str | None) -> str:
    script_src = f"'nonce-{nonce}'" if nonce else "'unsafe-inline'"
    directives = [
        "default-src 'self'",
        f"script-src 'self' {script_src} {_DOCS_CDN}",
        f"style-src 'self' 'unsafe-inline' {_DOCS_CDN}",
        "img-src 'self' data: https:",
        "connect-src 'self'",
        "frame-ancestors 'none'",
        "base-uri 'self'",
        "form-action 'self'",
    ]
    return "; ".join(directives) + ";"


def setup_compression(app: FastAPI) -> None:
    # Leaderboards and report feeds compress well; single records do not
    app.add_middleware(GZipMiddleware, minimum_size=800)


def setup_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(settings.cors_allow_origins),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-User-ID", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=settings.cors_max_age,
    )


def setup_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(STATIC_SECURITY_HEADERS)

        nonce = secrets.token_urlsafe(16) if settings.csp_use_nonce else None
        if nonce:
            response.headers["X-CSP-Nonce"] = nonce
        response.headers["Content-Security-Policy"] = content_security_policy(nonce)
        return response


def setup_request_size_limit(app: FastAPI) -> None:
    @app.middleware("http")
    async def limit_request_size(request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > MAX_REQUEST_BYTES:
            return JSONResponse(
                status_code=413,
                content={
                    "error": "payload_too_large",
                    "message": f"Request bodies are limited to {MAX_REQUEST_BYTES} bytes",
                },
                headers={"Cache-Control": "no-store"},
            )
        return await call_next(request)
