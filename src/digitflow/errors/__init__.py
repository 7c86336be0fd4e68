"""Error types and definitions."""

from __future__ import annotations

from digitflow.errors.dfp_errors import DFPError

__all__ = ["DFPError"]
