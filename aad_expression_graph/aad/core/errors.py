# aad/core/errors.py
"""
Exceptions raised by the expression graph.

Every error derives from ExpressionGraphError and from the builtin exception
a caller would naturally catch (KeyError for a missing name, RuntimeError for
a pass run out of order, ...), so code that only knows the builtins keeps working.
"""
from typing import Optional


class ExpressionGraphError(Exception):
    """Root of all expression graph errors; `details` is appended to the message."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class NameNotFoundError(ExpressionGraphError, KeyError):
    """Lookup of a name that was never registered on the graph."""

    def __init__(self, name: str):
        super().__init__(f"No such named node in graph: {name!r}")
        self.name = name


class DuplicateNameError(ExpressionGraphError, ValueError):
    """A name is already bound to a different node."""

    def __init__(self, name: str, existing_index: int, new_index: int):
        super().__init__(
            f"Name {name!r} is already bound to another node",
            {"existing": existing_index, "new": new_index},
        )
        self.name = name


class UninitializedAccessError(ExpressionGraphError, RuntimeError):
    """Value or adjoint read (or a pass started) before the pass that fills it."""


class EmptyGraphError(ExpressionGraphError, RuntimeError):
    """Backward pass requested on a graph with no nodes."""


class GraphMismatchError(ExpressionGraphError, ValueError):
    """A handle was used with a graph it does not belong to."""
