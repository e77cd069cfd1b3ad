"""
FastAPI application for anonymous text pasting.
Security-hardened version with rate limiting, CORS, and signed owner cookies.
"""
import os
import logging
import secrets
from pathlib import Path
from typing import Optional
from contextlib import asynccontextmanager
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

import database
from exceptions import (
    IdentifierAllocationError,
    PasteError,
    PasteLockedError,
    PasteNotFoundError,
)
from models import Entry, StoredEntry, SubmittedForm
from owner import resolve_owner
from security import is_secure_transport, sign_value, unsign_value
from utils.code_generator import Identifier, generate_id, parse_url_path

# ============ ENVIRONMENT CONFIG ============
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
PRODUCTION_DOMAIN = os.getenv("PRODUCTION_DOMAIN", "paste.example.org")
INSERT_RATE_LIMIT = os.getenv("INSERT_RATE_LIMIT", "10/minute")

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COOKIE_SECRET = os.getenv("COOKIE_SECRET", "").encode("utf-8")
if not COOKIE_SECRET:
    logger.warning("COOKIE_SECRET not set, uid cookies will not survive a restart")
    COOKIE_SECRET = secrets.token_bytes(32)

UID_COOKIE = "uid"

# Rate limiter setup
limiter = Limiter(key_func=get_remote_address)


# ============ LIFESPAN CONTEXT ============
@asynccontextmanager
async def lifespan(app):
    """Initialize the database on startup."""
    await database.init_db()
    logger.info("Paste service started successfully")
    yield
    logger.info("Paste service shutting down")


app = FastAPI(title="Paste", docs_url=None, redoc_url=None, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS Configuration - production origins only
ALLOWED_ORIGINS = [
    f"https://{PRODUCTION_DOMAIN}",
    f"https://www.{PRODUCTION_DOMAIN}",
] + (["http://localhost:8000", "http://127.0.0.1:8000"] if DEBUG else [])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent content type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer info
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Pastes are user content: no scripts at all
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'none'; "
            "style-src 'self' 'unsafe-inline'; "
            "frame-ancestors 'none';"
        )
        # HSTS - enforce HTTPS in production
        if not DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

app.add_middleware(SecurityHeadersMiddleware)

# Trusted Host Middleware - prevent host header attacks
_hosts_env = os.getenv("ALLOWED_HOSTS", "")
if _hosts_env:
    ALLOWED_HOSTS = [host.strip() for host in _hosts_env.split(",") if host.strip()]
else:
    ALLOWED_HOSTS = [PRODUCTION_DOMAIN, f"*.{PRODUCTION_DOMAIN}"] + (["localhost", "127.0.0.1"] if DEBUG else [])
app.add_middleware(TrustedHostMiddleware, allowed_hosts=ALLOWED_HOSTS)


TEMPLATES_PATH = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=TEMPLATES_PATH)


def make_error(request: Request, err: PasteError) -> HTMLResponse:
    """Render the error page for a failed request."""
    return templates.TemplateResponse(
        request,
        "error.html",
        {"status_code": err.status_code, "message": str(err)},
        status_code=err.status_code,
    )


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    """Serve the paste form."""
    return templates.TemplateResponse(request, "index.html", {})


@app.post("/")
@limiter.limit(INSERT_RATE_LIMIT)
async def create_paste(
    request: Request,
    extension: Optional[str] = Form(None),
    expires: Optional[str] = Form(None),
    password: str = Form(""),
    title: str = Form(""),
    burn_after_reading: Optional[str] = Form(None, alias="burn-after-reading"),
):
    """
    Create a new paste and redirect to it.

    The owner id is taken from the signed uid cookie or freshly allocated,
    and the cookie is (re)issued on every successful insert.
    """
    # Empty text is a valid paste, only a missing field is rejected
    text = (await request.form()).get("text")
    if not isinstance(text, str):
        raise HTTPException(status_code=422, detail="Field required: text")

    form = SubmittedForm(
        text=text,
        extension=extension,
        expires=expires,
        password=password,
        title=title,
        burn_after_reading=burn_after_reading,
    )

    # TODO: use the TLS state from the server once deployments stop terminating TLS at the proxy
    is_https = is_secure_transport(request.headers)

    try:
        try:
            identifier = await run_in_threadpool(generate_id)
        except Exception as e:
            raise IdentifierAllocationError(f"Failed to generate identifier: {e}") from e

        signed_uid = request.cookies.get(UID_COOKIE)
        cookie_value = unsign_value(signed_uid, COOKIE_SECRET) if signed_uid is not None else None
        uid = await resolve_owner(cookie_value, database.next_uid)

        entry = Entry.from_form(form)
        entry.uid = uid

        url = identifier.to_url_path(entry)
        if entry.burn_after_reading:
            url = f"burn/{url}"

        await database.insert(identifier, entry)
    except PasteError as e:
        logger.error(f"Paste creation failed: {e}")
        return make_error(request, e)

    logger.info(f"Paste created: {identifier} for uid {uid}")

    response = RedirectResponse(f"/{url}", status_code=303)
    response.set_cookie(
        UID_COOKIE,
        sign_value(str(uid), COOKIE_SECRET),
        httponly=True,
        secure=is_https,
        samesite="strict",
    )
    return response


async def _load_entry(path: str) -> tuple[Identifier, StoredEntry]:
    try:
        identifier = parse_url_path(path)
    except ValueError:
        raise PasteNotFoundError(f"No paste at /{path}")

    entry = await database.fetch(identifier)
    if entry is None:
        raise PasteNotFoundError(f"No paste at /{path}")
    if entry.protected:
        raise PasteLockedError("This paste is password protected")
    return identifier, entry


async def _consume_entry(path: str) -> StoredEntry:
    """Load a paste, deleting it if it is burn-after-reading."""
    identifier, entry = await _load_entry(path)
    if entry.burn_after_reading:
        await database.delete(identifier)
        logger.info(f"Burned paste {identifier}")
    return entry


@app.get("/burn/{path}", response_class=HTMLResponse)
async def burn_page(request: Request, path: str):
    """Show the link to a burn-after-reading paste without consuming it."""
    try:
        await _load_entry(path)
    except PasteError as e:
        return make_error(request, e)
    return templates.TemplateResponse(request, "burn.html", {"path": path})


@app.get("/raw/{path}", response_class=PlainTextResponse)
async def raw_paste(request: Request, path: str):
    """Serve the paste text as plain text."""
    try:
        entry = await _consume_entry(path)
    except PasteError as e:
        return make_error(request, e)
    return PlainTextResponse(entry.text)


@app.get("/{path}", response_class=HTMLResponse)
async def view_paste(request: Request, path: str):
    """Render a paste."""
    try:
        entry = await _consume_entry(path)
    except PasteError as e:
        return make_error(request, e)
    return templates.TemplateResponse(request, "paste.html", {"entry": entry, "path": path})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
