"""Streaming quote feed: markets, tick parsing and websocket streams."""

from __future__ import annotations

from digitflow.feed.client import Tick, TickStream, last_digit, parse_tick
from digitflow.feed.markets import MARKETS, Market, get_market

__all__ = ["MARKETS", "Market", "Tick", "TickStream", "get_market", "last_digit", "parse_tick"]
