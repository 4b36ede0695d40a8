"""Explicitly constructed service context shared by the request handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Header, Request

from .auth import FirebaseIdentity, Identity, PasswordLogin, TokenVerifier, parse_demo_accounts
from .balances import BalanceBook
from .cache import ResponseCache
from .config import Settings
from .credentials import SCOPES_SHEETS, resolve_provider
from .errors import CredentialsError
from .sheets import SheetsClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    settings: Settings
    sheets: Any
    identity: Any
    verifier: TokenVerifier
    cache: ResponseCache
    balances: BalanceBook
    password_login: Optional[PasswordLogin] = None


def assemble(settings: Settings, sheets: Any, identity: Any) -> ServiceContext:
    password_login = None
    if settings.TEST_LOGIN_ENABLED:
        if not settings.JWT_SECRET.strip():
            raise CredentialsError("JWT_SECRET must be set when TEST_LOGIN_ENABLED is on")
        logger.warning("password test login is enabled; do not run this in production")
        password_login = PasswordLogin(
            parse_demo_accounts(settings.TEST_USERS),
            settings.JWT_SECRET,
            settings.JWT_ALGORITHM,
            settings.JWT_EXPIRE_MINUTES,
        )
    return ServiceContext(
        settings=settings,
        sheets=sheets,
        identity=identity,
        verifier=TokenVerifier(identity, password_login),
        cache=ResponseCache(settings.CACHE_TTL_SECONDS, settings.CACHE_STALE_SECONDS),
        balances=BalanceBook(sheets, settings.BALANCE_RANGE),
        password_login=password_login,
    )


def build_context(settings: Settings) -> ServiceContext:
    google = resolve_provider(settings, "GOOGLE")
    if google is None:
        raise CredentialsError(
            "Missing Google credentials: set GOOGLE_CREDENTIALS, "
            "GOOGLE_CREDENTIALS_FILE or GOOGLE_CLIENT_EMAIL/GOOGLE_PRIVATE_KEY"
        )
    firebase = resolve_provider(settings, "FIREBASE") or google
    sheets = SheetsClient(google.google_credentials(SCOPES_SHEETS), settings.GOOGLE_SHEET_ID)
    identity = FirebaseIdentity.from_provider(firebase)
    logger.info("service context ready (sheets: %s, firebase: %s)", google.kind, firebase.kind)
    return assemble(settings, sheets, identity)


def get_context(request: Request) -> ServiceContext:
    return request.app.state.context


async def require_user(
    authorization: str | None = Header(default=None),
    ctx: ServiceContext = Depends(get_context),
) -> Identity:
    return await ctx.verifier.verify(authorization)
