"""TradeBoard: dashboard gateway over a Google spreadsheet and Firebase Auth."""

__version__ = "0.1.0"
