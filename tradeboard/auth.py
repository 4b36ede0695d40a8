"""Bearer-token verification and token issuing.

Federated users present Firebase ID tokens. When the password test login is
enabled, tokens signed with ``JWT_SECRET`` are accepted as well.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import firebase_admin
from firebase_admin import auth as fb_auth
from firebase_admin import credentials as fb_credentials
from firebase_admin.exceptions import FirebaseError
from jose import JWTError, jwt

from .blocking import run_blocking
from .credentials import CredentialProvider
from .errors import InvalidTokenError, MissingTokenError, Unauthorized, UpstreamError

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "tradeboard"
TOKEN_ISSUER = "tradeboard"


@dataclass
class Identity:
    email: str
    display_name: str
    uid: str
    phone_number: Optional[str] = None
    claims: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Identity":
        email = claims.get("email") or ""
        uid = claims.get("uid") or claims.get("sub") or ""
        name = claims.get("name") or (email.split("@")[0] if email else uid)
        return cls(
            email=email,
            display_name=name,
            uid=uid,
            phone_number=claims.get("phone_number"),
            claims=dict(claims),
        )

    def public(self) -> dict[str, str]:
        return {"email": self.email, "displayName": self.display_name, "uid": self.uid}


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise MissingTokenError()
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise MissingTokenError()
    return token


class FirebaseIdentity:
    """Verifies ID tokens and mints custom tokens through firebase-admin."""

    def __init__(self, app: firebase_admin.App) -> None:
        self._app = app

    @classmethod
    def from_provider(cls, provider: CredentialProvider, name: str = FIREBASE_APP_NAME) -> "FirebaseIdentity":
        try:
            app = firebase_admin.get_app(name)
        except ValueError:
            cert = fb_credentials.Certificate(provider.info())
            app = firebase_admin.initialize_app(cert, name=name)
            logger.info("firebase app %r initialized from %s credentials", name, provider.kind)
        return cls(app)

    async def verify_id_token(self, token: str) -> dict[str, Any]:
        try:
            return await run_blocking(fb_auth.verify_id_token, token, app=self._app)
        except fb_auth.CertificateFetchError as exc:
            raise UpstreamError("Could not reach identity provider", detail=str(exc)) from exc
        except (fb_auth.InvalidIdTokenError, ValueError) as exc:
            logger.info("rejected id token: %s", exc)
            raise InvalidTokenError() from exc

    async def create_custom_token(self, uid: str) -> str:
        try:
            token = await run_blocking(fb_auth.create_custom_token, uid, app=self._app)
        except (FirebaseError, ValueError) as exc:
            raise UpstreamError("Failed to create custom token", detail=str(exc)) from exc
        return token.decode("utf-8") if isinstance(token, bytes) else token


@dataclass(frozen=True)
class DemoAccount:
    email: str
    password: str
    display_name: str


def parse_demo_accounts(raw: str) -> dict[str, DemoAccount]:
    users: dict[str, DemoAccount] = {}
    for entry in raw.split(","):
        parts = [p.strip() for p in entry.split(":", 2)]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            continue
        name = parts[2] if len(parts) > 2 and parts[2] else parts[0].split("@")[0]
        users[parts[0]] = DemoAccount(parts[0], parts[1], name)
    return users


class PasswordLogin:
    """In-memory test accounts that receive short-lived HS256 tokens."""

    def __init__(
        self,
        users: dict[str, DemoAccount],
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60,
    ) -> None:
        self.users = users
        self._secret = secret
        self._algorithm = algorithm
        self._expire = timedelta(minutes=expire_minutes)

    def authenticate(self, email: str, password: str) -> DemoAccount:
        user = self.users.get(email)
        if user is None or not hmac.compare_digest(user.password.encode(), password.encode()):
            raise Unauthorized("Invalid email or password")
        return user

    def issue(self, user: DemoAccount) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": f"test:{user.email}",
            "email": user.email,
            "name": user.display_name,
            "iss": TOKEN_ISSUER,
            "iat": now,
            "exp": now + self._expire,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> Identity:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=TOKEN_ISSUER,
                options={"require_exp": True},
            )
        except JWTError as exc:
            raise InvalidTokenError() from exc
        return Identity.from_claims(claims)


class TokenVerifier:
    def __init__(self, identity: Any, password_login: Optional[PasswordLogin] = None) -> None:
        self.identity = identity
        self.password_login = password_login

    async def verify(self, authorization: Optional[str]) -> Identity:
        token = bearer_token(authorization)
        if self.password_login is not None:
            try:
                return self.password_login.decode(token)
            except InvalidTokenError:
                pass
        claims = await self.identity.verify_id_token(token)
        return Identity.from_claims(claims)
