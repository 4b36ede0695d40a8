from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from .errors import EmptyRangeError
from .rows import BalanceRow, RawRow, find_balance

logger = logging.getLogger(__name__)


class BalanceBook:
    """The per-user balance sheet, keyed by email."""

    def __init__(self, sheets: Any, rng: str) -> None:
        self.sheets = sheets
        self.rng = rng
        self._lock = asyncio.Lock()

    async def _rows(self) -> List[RawRow]:
        try:
            return await self.sheets.read_range(self.rng)
        except EmptyRangeError:
            return []

    async def lookup(self, email: str) -> Optional[BalanceRow]:
        return find_balance(await self._rows(), email)

    async def ensure(self, email: str, display_name: str = "", phone: str = "") -> bool:
        """Append an opening row for ``email`` unless one exists. Returns True when created."""
        async with self._lock:
            if find_balance(await self._rows(), email) is not None:
                return False
            row = BalanceRow.opening(email, display_name or "", phone or "")
            await self.sheets.append_row(self.rng, row.to_cells())
        logger.info("created balance row for %s", email)
        return True

    async def wallet(self, email: str) -> dict[str, Any]:
        row = await self.lookup(email)
        return {
            "userEmail": email,
            "balance": row.balance if row else 0,
            "earnings": row.earnings if row else 0,
        }
