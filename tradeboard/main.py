from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .auth import Identity
from .config import reload_settings, settings
from .context import ServiceContext, build_context, get_context, require_user
from .errors import (
    EmptyRangeError,
    Forbidden,
    GatewayError,
    InvalidTokenError,
    RateLimitedError,
    Unauthorized,
    UpstreamError,
    ValidationFailed,
    install_handlers,
)
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .rows import PerformanceSnapshot, pnl_series, trades_newest_first

logger = logging.getLogger(__name__)

PERFORMANCE_KEY = "performance-data"


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GoogleLoginRequest(BaseModel):
    idToken: Optional[str] = None


class SignupRequest(BaseModel):
    email: Optional[str] = None
    displayName: Optional[str] = None
    phoneNumber: Optional[str] = None


api = APIRouter()


@api.get("/")
def root():
    return {"message": "Server is running!"}


@api.get("/api/verify-token")
async def verify_token(user: Identity = Depends(require_user)):
    return {"success": True, "user": user.public()}


@api.get("/api/performance-data")
async def performance_data(
    _: Identity = Depends(require_user),
    ctx: ServiceContext = Depends(get_context),
):
    cached = ctx.cache.get(PERFORMANCE_KEY)
    if cached is not None:
        return cached
    try:
        rows = await ctx.sheets.read_range(ctx.settings.PERFORMANCE_RANGE)
        snapshot = PerformanceSnapshot.from_cells(rows[0]).model_dump()
    except GatewayError as exc:
        stale = ctx.cache.get_stale(PERFORMANCE_KEY)
        if stale is not None:
            logger.warning("serving stale performance data: %s", exc.detail or exc.message)
            return stale
        raise
    ctx.cache.set(PERFORMANCE_KEY, snapshot)
    return snapshot


@api.get("/api/trade-history")
async def trade_history(
    _: Identity = Depends(require_user),
    ctx: ServiceContext = Depends(get_context),
):
    try:
        rows = await ctx.sheets.read_range(
            ctx.settings.TRADE_HISTORY_RANGE, datetime_render="FORMATTED_STRING"
        )
    except EmptyRangeError:
        return []
    except UpstreamError as exc:
        raise UpstreamError("Failed to fetch trade history", detail=exc.detail) from exc
    trades = trades_newest_first(rows)
    logger.info("processed %d trades", len(trades))
    return [t.model_dump() for t in trades]


@api.get("/api/pnl-data")
async def pnl_data(
    _: Identity = Depends(require_user),
    ctx: ServiceContext = Depends(get_context),
):
    try:
        rows = await ctx.sheets.read_range(
            ctx.settings.TRADE_HISTORY_RANGE, datetime_render="FORMATTED_STRING"
        )
    except EmptyRangeError:
        return []
    except UpstreamError as exc:
        raise UpstreamError("Internal server error", detail=exc.detail) from exc
    return [p.model_dump() for p in pnl_series(rows, ctx.settings.PNL_POINTS)]


@api.get("/api/wallet-data")
async def wallet_data(
    user: Identity = Depends(require_user),
    ctx: ServiceContext = Depends(get_context),
):
    try:
        return await ctx.balances.wallet(user.email)
    except UpstreamError as exc:
        raise UpstreamError("Failed to fetch wallet data", detail=exc.detail) from exc


@api.post("/api/login")
async def login(body: LoginRequest, ctx: ServiceContext = Depends(get_context)):
    if ctx.password_login is None:
        raise Forbidden("Password login is disabled")
    if not body.email or not body.password:
        raise ValidationFailed("Email and password are required")
    account = ctx.password_login.authenticate(body.email, body.password)
    token = ctx.password_login.issue(account)
    return {
        "token": token,
        "user": {
            "email": account.email,
            "displayName": account.display_name,
            "uid": f"test:{account.email}",
        },
    }


@api.post("/api/login/google")
async def login_google(body: GoogleLoginRequest, ctx: ServiceContext = Depends(get_context)):
    if not body.idToken:
        raise ValidationFailed("No ID token provided")
    try:
        claims = await ctx.identity.verify_id_token(body.idToken)
    except InvalidTokenError as exc:
        raise Unauthorized("Failed to authenticate with Google") from exc
    user = Identity.from_claims(claims)
    if not user.email:
        raise ValidationFailed("ID token carries no email")
    await ctx.balances.ensure(user.email, claims.get("name") or "", user.phone_number or "")
    token = await ctx.identity.create_custom_token(user.uid)
    return {"token": token, "user": claims}


@api.post("/api/signup")
async def signup(
    body: SignupRequest,
    user: Identity = Depends(require_user),
    ctx: ServiceContext = Depends(get_context),
):
    if not body.email or body.email != user.email:
        return JSONResponse(
            {"success": False, "message": "Token email does not match provided email"},
            status_code=403,
        )
    try:
        await ctx.balances.ensure(body.email, body.displayName or "", body.phoneNumber or "")
    except GatewayError as exc:
        logger.error("signup failed for %s: %s", body.email, exc.detail or exc.message)
        content = {"success": False, "message": "Internal server error"}
        if not ctx.settings.is_production:
            content["details"] = exc.detail or exc.message
        status = 429 if isinstance(exc, RateLimitedError) else 500
        return JSONResponse(content, status_code=status)
    return {"success": True, "message": "User created successfully"}


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def create_app(context: ServiceContext | None = None) -> FastAPI:
    cfg = context.settings if context is not None else settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.context is None:
            reload_settings()
            app.state.context = build_context(settings)
        yield

    app = FastAPI(title="TradeBoard", version=__version__, lifespan=lifespan)
    app.state.context = context
    app.add_middleware(RequestLogMiddleware)
    app.include_router(metrics_router())

    @app.middleware("http")
    async def _metrics(request: Request, call_next):
        method = request.method
        start = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = _route_label(request)
            REQS.labels(method, path, str(status_code)).inc()
            LAT.labels(method, path).observe(time.time() - start)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )
    install_handlers(app, cfg)
    app.include_router(api)
    return app


init_logging(settings.LOG_LEVEL)

app = create_app()


def run() -> None:
    uvicorn.run("tradeboard.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
