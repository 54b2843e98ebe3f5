# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from memberauth.auth import flow
from memberauth.auth.session import SessionRecord
from memberauth.config import Settings
from memberauth.context import AppContext, build_context
from memberauth.errors import (
    Conflict,
    Forbidden,
    InvalidCredentials,
    LastAdminError,
    LoggedOut,
    NotFound,
    StoreUnavailable,
    Unauthenticated,
    ValidationError,
)
from memberauth.permissions import (
    current_session_optional,
    demote_to_user,
    get_context,
    promote_to_admin,
    require_admin,
    require_user,
    session_id,
)

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "static"

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

NO_CACHE = "no-store, no-cache, must-revalidate, private"

FORM_ERRORS = {
    "signup": {
        "invalid": "Invalid input. Please try again.",
        "exists": "An account with that email already exists.",
    },
    "login": {"invalid": "Invalid username/password combination"},
    "admin": {"last_admin": "The last remaining admin cannot be demoted."},
}

router = APIRouter()


def _render(request: Request, template_name: str, ctx: Optional[dict] = None, status_code: int = 200):
    """TemplateResponse wrapper injecting the current session."""
    base_ctx = {"session": getattr(request.state, "session", None)}
    return templates.TemplateResponse(
        request, template_name, {**base_ctx, **(ctx or {})}, status_code=status_code
    )


def _error_message(form: str, error: str) -> str:
    return FORM_ERRORS.get(form, {}).get(error, "")


def _member_images() -> list[str]:
    img_dir = STATIC_DIR / "img"
    return [f"/static/img/{p.name}" for p in sorted(img_dir.glob("*.svg"))]


def _with_session_cookie(resp, ctx: AppContext, sid: str):
    resp.set_cookie(
        ctx.settings.cookie_name,
        ctx.cookie.sign(sid),
        max_age=ctx.settings.session_ttl,
        **ctx.settings.cookie_settings(),
    )
    return resp


# ------------------ Routes ------------------


@router.get("/", response_class=HTMLResponse)
async def home(request: Request, session: Optional[SessionRecord] = Depends(current_session_optional)):
    return _render(request, "home.html", {"user": session.name if session else None})


@router.get("/signup", response_class=HTMLResponse)
async def signup_form(request: Request, error: str = ""):
    return _render(request, "signup.html", {"error": _error_message("signup", error)})


@router.post("/submitUser")
async def submit_user(
    request: Request,
    email: str = Form(""),
    name: str = Form(""),
    password: str = Form(""),
):
    ctx = get_context(request)
    try:
        sid, session = await flow.signup(
            ctx,
            {"email": email, "name": name, "password": password},
            previous_sid=session_id(request),
        )
    except ValidationError:
        return RedirectResponse(url="/signup?error=invalid", status_code=303)
    except Conflict as e:
        logger.info("Signup conflict: %s", e)
        return RedirectResponse(url="/signup?error=exists", status_code=303)
    request.state.session = session
    resp = _render(request, "signup_success.html", {"name": session.name})
    return _with_session_cookie(resp, ctx, sid)


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request, error: str = ""):
    return _render(request, "login.html", {"error": _error_message("login", error)})


@router.post("/loggingin")
async def logging_in(request: Request, email: str = Form(""), password: str = Form("")):
    ctx = get_context(request)
    try:
        sid, _ = await flow.login(
            ctx, {"email": email, "password": password}, previous_sid=session_id(request)
        )
    except InvalidCredentials:
        return RedirectResponse(url="/login?error=invalid", status_code=303)
    resp = RedirectResponse(url="/loggedin", status_code=303)
    return _with_session_cookie(resp, ctx, sid)


@router.get("/loggedin", response_class=HTMLResponse)
async def logged_in(request: Request, session: SessionRecord = Depends(require_user)):
    ctx = get_context(request)
    session = await flow.refresh_identity(ctx, request.state.sid, session)
    request.state.session = session
    return _render(request, "loggedin.html", {"name": session.name})


@router.get("/members", response_class=HTMLResponse)
async def members(request: Request, session: SessionRecord = Depends(require_user)):
    return _render(request, "members.html", {"name": session.name, "images": _member_images()})


@router.get("/admin", response_class=HTMLResponse)
async def admin(request: Request, error: str = "", session: SessionRecord = Depends(require_admin)):
    users = await get_context(request).users.list_all()
    return _render(
        request,
        "admin.html",
        {"users": users, "error": _error_message("admin", error)},
    )


@router.get("/admin/promote/{user_id}")
async def admin_promote(request: Request, user_id: str, session: SessionRecord = Depends(require_admin)):
    await promote_to_admin(get_context(request), user_id)
    return RedirectResponse(url="/admin", status_code=303)


@router.get("/admin/demote/{user_id}")
async def admin_demote(request: Request, user_id: str, session: SessionRecord = Depends(require_admin)):
    try:
        await demote_to_user(get_context(request), user_id)
    except LastAdminError as e:
        logger.warning("%s", e)
        return RedirectResponse(url="/admin?error=last_admin", status_code=303)
    return RedirectResponse(url="/admin", status_code=303)


@router.get("/logout")
async def logout(request: Request):
    ctx = get_context(request)
    await flow.logout(ctx, session_id(request))
    resp = RedirectResponse(url="/", status_code=303)
    resp.delete_cookie(ctx.settings.cookie_name)
    return resp


# ------------------ Error mapping ------------------


async def _unauthenticated(request: Request, exc: Unauthenticated):
    resp = RedirectResponse(url="/login", status_code=303)
    if isinstance(exc, LoggedOut):
        resp.delete_cookie(get_context(request).settings.cookie_name)
    return resp


async def _forbidden(request: Request, exc: Forbidden):
    return _render(request, "403.html", status_code=403)


async def _not_found(request: Request, exc: NotFound):
    logger.info("Not found: %s", exc)
    return _render(request, "404.html", status_code=404)


async def _store_unavailable(request: Request, exc: StoreUnavailable):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return PlainTextResponse("Internal Server Error", status_code=500)


async def _http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _render(request, "404.html", status_code=404)
    return await http_exception_handler(request, exc)


def create_app(ctx: Optional[AppContext] = None) -> FastAPI:
    if ctx is None:
        ctx = build_context(Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        close = getattr(ctx.sessions, "close", None)
        if close is not None:
            await close()

    app = FastAPI(lifespan=lifespan)
    app.state.ctx = ctx

    @app.middleware("http")
    async def _no_cache(request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = NO_CACHE
        return response

    app.add_exception_handler(Unauthenticated, _unauthenticated)
    app.add_exception_handler(Forbidden, _forbidden)
    app.add_exception_handler(NotFound, _not_found)
    app.add_exception_handler(StoreUnavailable, _store_unavailable)
    app.add_exception_handler(StarletteHTTPException, _http_error)

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.include_router(router)
    return app
