"""Websocket tick stream for the public quote feed.

One :class:`TickStream` owns one connection for one instrument. On connect it
sends ``{"ticks": <symbol>}`` and then yields a :class:`Tick` for every
inbound message carrying ``tick.quote``. The unit of observation is the last
decimal digit of the quote as the feed prints it; price magnitude is dropped.

Failures are not retried: the stream logs, flips ``connected`` to False and
ends. Closing is up to the caller (cancel the consuming task); leaving the
``async with`` block releases the socket.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import websockets

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tick:
    """One quote update reduced to its last digit."""

    symbol: str
    quote: str
    digit: int
    epoch: int | None = None


def format_quote(quote: Any) -> str:
    """Render a quote the way the feed's JSON number prints.

    Integral floats drop the trailing ``.0`` (``1234.0`` -> ``"1234"``) so the
    last character is a real digit of the price.
    """
    if isinstance(quote, bool):
        msg = f"invalid quote: {quote!r}"
        raise TypeError(msg)
    if isinstance(quote, int):
        return str(quote)
    if isinstance(quote, float):
        if quote.is_integer():
            return str(int(quote))
        return repr(quote)
    if isinstance(quote, str):
        return quote.strip()
    msg = f"invalid quote: {quote!r}"
    raise TypeError(msg)


def last_digit(quote: Any) -> int:
    """Return the final decimal digit (0-9) of a quote's string form.

    Raises:
        ValueError: If the string form does not end in a digit.
    """
    text = format_quote(quote)
    if not text or not text[-1].isdigit():
        msg = f"quote {text!r} does not end in a digit"
        raise ValueError(msg)
    return int(text[-1])


def parse_tick(message: str | bytes | dict[str, Any], symbol: str) -> Tick | None:
    """Extract a :class:`Tick` from a raw feed message.

    Returns None for messages without a quote (subscription acks, pings,
    error payloads).
    """
    data = json.loads(message) if isinstance(message, str | bytes) else message
    if not isinstance(data, dict):
        return None
    tick = data.get("tick")
    if not isinstance(tick, dict) or tick.get("quote") is None:
        return None
    quote = format_quote(tick["quote"])
    epoch = tick.get("epoch")
    return Tick(
        symbol=str(tick.get("symbol") or symbol),
        quote=quote,
        digit=last_digit(quote),
        epoch=int(epoch) if isinstance(epoch, int | float) else None,
    )


class TickStream:
    """A single-instrument subscription to the quote feed.

    Usage::

        stream = TickStream("R_100", url=config.feed.url)
        async for tick in stream.ticks():
            ...

    Args:
        symbol: Feed instrument identifier (e.g. ``R_100``).
        url: Websocket endpoint.
        connect: Connection factory; defaults to :func:`websockets.connect`.
    """

    def __init__(
        self,
        symbol: str,
        *,
        url: str,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.symbol = symbol
        self.url = url
        self._connect = connect or websockets.connect
        self.connected = False
        self.error: str | None = None

    async def ticks(self) -> AsyncIterator[Tick]:
        """Connect, subscribe and yield ticks until the connection ends."""
        try:
            # No open timeout: a stalled connect simply stays disconnected.
            async with self._connect(self.url, open_timeout=None) as ws:
                self.connected = True
                self.error = None
                await ws.send(json.dumps({"ticks": self.symbol}))
                logger.info("Subscribed to %s", self.symbol)
                async for raw in ws:
                    tick = self._decode(raw)
                    if tick is not None:
                        yield tick
        except (OSError, TimeoutError, websockets.WebSocketException) as exc:
            self.error = str(exc) or type(exc).__name__
            logger.warning("Feed connection for %s failed: %s", self.symbol, self.error)
        finally:
            self.connected = False

    def _decode(self, raw: str | bytes) -> Tick | None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON message on %s", self.symbol)
            return None
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            self.error = str(data["error"].get("message") or data["error"].get("code"))
            logger.warning("Feed error for %s: %s", self.symbol, self.error)
            return None
        try:
            return parse_tick(data, self.symbol)
        except (TypeError, ValueError) as exc:
            logger.debug("Ignoring malformed tick on %s: %s", self.symbol, exc)
            return None
