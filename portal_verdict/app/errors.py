"""Error types raised at the edges of the compare flow.

The transition function itself never raises; these are produced by the capture
boundary, the key-value backends and the verdict calculator.
"""
from typing import Any, Dict, List


class SnapshotValidationError(ValueError):
    """A captured snapshot payload was malformed and was not accepted."""

    def __init__(self, target: str, errors: List[Dict[str, Any]] | None = None, message: str | None = None):
        self.target = target
        self.errors = errors or []
        if message is None:
            fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in self.errors)
            message = f"Invalid {target} snapshot" + (f": {fields}" if fields else "")
        super().__init__(message)


class PersistenceError(RuntimeError):
    """A key-value backend failed to read or write."""


class InvalidPriceError(ValueError):
    """A price given to the calculator was zero or negative."""
