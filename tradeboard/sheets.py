from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from .blocking import run_blocking
from .errors import EmptyRangeError, RateLimitedError, UpstreamError
from .metrics import SHEETS_ERRORS
from .rows import Cell

logger = logging.getLogger(__name__)


def _service(creds: Credentials):
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def _translate(exc: Exception, rng: str) -> Exception:
    if isinstance(exc, HttpError):
        status = getattr(exc.resp, "status", None)
        if status == 429:
            SHEETS_ERRORS.labels("rate_limited").inc()
            return RateLimitedError(detail=f"quota exhausted reading {rng}")
        if status == 404:
            SHEETS_ERRORS.labels("not_found").inc()
            return EmptyRangeError(detail=f"range not found: {rng}")
    SHEETS_ERRORS.labels("upstream").inc()
    return UpstreamError(detail=str(exc))


class SheetsClient:
    """Async facade over the Sheets v4 values API for one spreadsheet."""

    def __init__(self, creds: Credentials, spreadsheet_id: str) -> None:
        self._creds = creds
        self.spreadsheet_id = spreadsheet_id

    def _get(self, rng: str, value_render: str, datetime_render: Optional[str]) -> dict:
        params: dict[str, Any] = {
            "spreadsheetId": self.spreadsheet_id,
            "range": rng,
            "valueRenderOption": value_render,
        }
        if datetime_render:
            params["dateTimeRenderOption"] = datetime_render
        return _service(self._creds).spreadsheets().values().get(**params).execute()

    def _append(self, rng: str, row: Sequence[Cell]) -> dict:
        body = {"values": [list(row)]}
        return (
            _service(self._creds)
            .spreadsheets()
            .values()
            .append(
                spreadsheetId=self.spreadsheet_id,
                range=rng,
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body=body,
            )
            .execute()
        )

    async def read_range(
        self,
        rng: str,
        value_render: str = "UNFORMATTED_VALUE",
        datetime_render: Optional[str] = None,
    ) -> List[List[Cell]]:
        try:
            res = await run_blocking(self._get, rng, value_render, datetime_render)
        except (HttpError, HttpLib2Error, GoogleAuthError, OSError) as exc:
            raise _translate(exc, rng) from exc
        values = res.get("values") or []
        if not values:
            raise EmptyRangeError(detail=f"no rows in {rng}")
        return values

    async def append_row(self, rng: str, row: Sequence[Cell]) -> dict:
        try:
            res = await run_blocking(self._append, rng, row)
        except (HttpError, HttpLib2Error, GoogleAuthError, OSError) as exc:
            raise _translate(exc, rng) from exc
        updates = res.get("updates", {})
        logger.info("appended %s row(s) to %s", updates.get("updatedRows", 1), updates.get("updatedRange", rng))
        return res
