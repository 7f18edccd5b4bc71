"""
hdc_core/errors.py - Input validation errors for vector operations.

Both errors subclass ValueError so callers that already guard against
bad input with ``except ValueError`` keep working.
"""
from __future__ import annotations


class GeometryMismatch(ValueError):
    """Raised when operands of one operation have different geometry."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Geometry mismatch: expected {expected}, got {actual}")


class EmptyOperandsError(ValueError):
    """Raised when bind_all/bundle receive no vectors."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation}: at least one vector required")
