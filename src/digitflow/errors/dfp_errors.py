"""DFPError: the one exception type the API turns into an error response."""

from __future__ import annotations


class DFPError(Exception):
    """An error carrying a user-facing message and the HTTP status it maps to.

    Most instances are module-level constants in
    :mod:`digitflow.errors.definitions` and are raised as-is; the verification
    messages are shown to end users verbatim.
    """

    def __init__(self, message: str, *, status_code: int = 500, code: str = "dfp-error") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return f"DFPError({self.message!r}, status_code={self.status_code}, code={self.code!r})"

    def to_dict(self) -> dict[str, str]:
        """JSON error body: ``{"error": message, "code": code}``."""
        return {"error": self.message, "code": self.code}
