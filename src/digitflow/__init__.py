"""Digit Flow Pro: access-key gated last-digit analysis of synthetic index ticks."""

__version__ = "0.1.0"
