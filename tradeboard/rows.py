"""Conversion of loosely typed spreadsheet cells into typed rows.

Google returns ``UNFORMATTED_VALUE`` cells as strings, numbers or booleans,
and trims trailing empty cells from each row. Everything downstream of this
module works on the pydantic models below, never on raw cell lists.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Union

from pydantic import BaseModel

Cell = Union[str, int, float, bool, None]
RawRow = Sequence[Cell]

DEFAULT_SYMBOL = "GOLD"
DEFAULT_DIRECTION = "BUY"
TRADE_FIELDS = 4


def cell(row: RawRow, index: int) -> Cell:
    return row[index] if index < len(row) else None


def as_float(value: Cell, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def as_text(value: Cell, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value)
    return text if text else default


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BalanceRow(BaseModel):
    display_name: str = ""
    email: str
    phone: str = ""
    deposit: float = 0.0
    pnl_percent: float = 0.0
    earnings: float = 0.0
    balance: float = 0.0

    @classmethod
    def from_cells(cls, row: RawRow) -> "BalanceRow":
        return cls(
            display_name=as_text(cell(row, 0)),
            email=as_text(cell(row, 1)),
            phone=as_text(cell(row, 2)),
            deposit=as_float(cell(row, 3)),
            pnl_percent=as_float(cell(row, 4)),
            earnings=as_float(cell(row, 5)),
            balance=as_float(cell(row, 6)),
        )

    @classmethod
    def opening(cls, email: str, display_name: str = "", phone: str = "") -> "BalanceRow":
        return cls(display_name=display_name, email=email, phone=phone)

    def to_cells(self) -> List[Cell]:
        return [
            self.display_name,
            self.email,
            self.phone,
            self.deposit,
            self.pnl_percent,
            self.earnings,
            self.balance,
        ]


class TradeRecord(BaseModel):
    timestamp: Union[str, int, float]
    symbol: str
    direction: str
    pnl: float


class PnlPoint(BaseModel):
    date: Union[str, int, float]
    pnl: str


class PerformanceSnapshot(BaseModel):
    thisWeek: str
    lastWeek: str
    monthly: int
    yearly: int

    @classmethod
    def from_cells(cls, row: RawRow) -> "PerformanceSnapshot":
        return cls(
            thisWeek=f"{as_float(cell(row, 0)):.2f}",
            lastWeek=f"{as_float(cell(row, 2)):.2f}",
            monthly=round_half_up(as_float(cell(row, 4))),
            yearly=round_half_up(as_float(cell(row, 6))),
        )


def _timestamp(value: Cell) -> Optional[Union[str, int, float]]:
    if value is None or isinstance(value, bool) or value == "":
        return None
    if isinstance(value, (int, float)) and value == 0:
        return None
    return value


def trade_from_cells(row: RawRow) -> Optional[TradeRecord]:
    if len(row) < TRADE_FIELDS:
        return None
    timestamp = _timestamp(cell(row, 0))
    if timestamp is None:
        return None
    return TradeRecord(
        timestamp=timestamp,
        symbol=as_text(cell(row, 1), DEFAULT_SYMBOL),
        direction=as_text(cell(row, 2), DEFAULT_DIRECTION),
        pnl=as_float(cell(row, 3)),
    )


def trades_newest_first(rows: Sequence[RawRow]) -> List[TradeRecord]:
    trades = [t for t in (trade_from_cells(r) for r in rows) if t is not None]
    trades.reverse()
    return trades


def pnl_series(rows: Sequence[RawRow], limit: int) -> List[PnlPoint]:
    if limit <= 0:
        return []
    points: List[PnlPoint] = []
    for row in rows:
        if len(row) < TRADE_FIELDS:
            continue
        date = _timestamp(cell(row, 0))
        if date is None:
            continue
        points.append(PnlPoint(date=date, pnl=f"{as_float(cell(row, 3)):.2f}"))
    return points[-limit:]


def find_balance(rows: Sequence[RawRow], email: str) -> Optional[BalanceRow]:
    for row in rows:
        if cell(row, 1) == email:
            return BalanceRow.from_cells(row)
    return None
