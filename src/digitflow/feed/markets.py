"""Known synthetic volatility index instruments."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Market:
    id: str
    name: str


MARKETS: tuple[Market, ...] = (
    Market("R_10", "Volatility 10 Index"),
    Market("R_25", "Volatility 25 Index"),
    Market("R_50", "Volatility 50 Index"),
    Market("R_75", "Volatility 75 Index"),
    Market("R_100", "Volatility 100 Index"),
    Market("1HZ10V", "Volatility 10 (1s) Index"),
    Market("1HZ25V", "Volatility 25 (1s) Index"),
    Market("1HZ50V", "Volatility 50 (1s) Index"),
    Market("1HZ75V", "Volatility 75 (1s) Index"),
    Market("1HZ100V", "Volatility 100 (1s) Index"),
)

_BY_ID = {m.id: m for m in MARKETS}


def get_market(market_id: str) -> Market | None:
    """Look up a known market by its feed symbol."""
    return _BY_ID.get(market_id)
