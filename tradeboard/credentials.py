from __future__ import annotations

import json
import pathlib
from typing import Any, Optional

from google.oauth2.service_account import Credentials as SACreds

from .config import Settings
from .errors import CredentialsError

SCOPES_SHEETS = ["https://www.googleapis.com/auth/spreadsheets"]


class CredentialProvider:
    """Source of a service-account key, however it reaches the process."""

    kind = "abstract"

    def info(self) -> dict[str, Any]:
        raise NotImplementedError

    def google_credentials(self, scopes: list[str]) -> SACreds:
        return SACreds.from_service_account_info(self.info(), scopes=scopes)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind}>"


class InlineServiceAccount(CredentialProvider):
    kind = "inline"

    def __init__(self, json_str: str) -> None:
        self._json = json_str

    def info(self) -> dict[str, Any]:
        try:
            data = json.loads(self._json)
        except json.JSONDecodeError as exc:
            raise CredentialsError("Service account JSON is malformed") from exc
        if not isinstance(data, dict):
            raise CredentialsError("Service account JSON must be an object")
        return data


class ServiceAccountFile(CredentialProvider):
    kind = "file"

    def __init__(self, path: str) -> None:
        self.path = pathlib.Path(path)

    def info(self) -> dict[str, Any]:
        if not self.path.exists():
            raise CredentialsError(f"Service account file not found: {self.path}")
        return InlineServiceAccount(self.path.read_text(encoding="utf-8")).info()


class SplitServiceAccount(CredentialProvider):
    kind = "split"

    def __init__(self, client_email: str, private_key: str, project_id: Optional[str]) -> None:
        self.client_email = client_email
        # keys pasted into .env files usually carry escaped newlines
        self.private_key = private_key.replace("\\n", "\n")
        self.project_id = project_id

    def info(self) -> dict[str, Any]:
        return {
            "type": "service_account",
            "project_id": self.project_id or "",
            "client_email": self.client_email,
            "private_key": self.private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }


def resolve_provider(settings: Settings, prefix: str = "GOOGLE") -> Optional[CredentialProvider]:
    inline = getattr(settings, f"{prefix}_CREDENTIALS", None)
    if inline:
        return InlineServiceAccount(inline)
    path = getattr(settings, f"{prefix}_CREDENTIALS_FILE", None)
    if path:
        return ServiceAccountFile(path)
    email = getattr(settings, f"{prefix}_CLIENT_EMAIL", None)
    key = getattr(settings, f"{prefix}_PRIVATE_KEY", None)
    if email and key:
        return SplitServiceAccount(email, key, getattr(settings, f"{prefix}_PROJECT_ID", None))
    return None
