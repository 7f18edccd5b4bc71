"""
kb_reasoning/errors.py - Input validation errors for the reasoning core

Not-found and non-match outcomes are never exceptions; only input that
cannot be indexed or restored raises.
"""
from __future__ import annotations


class MalformedTripleError(ValueError):
    """A fact is missing subject, relation or object."""


class SnapshotError(ValueError):
    """A snapshot record is malformed; raised before the store is touched."""

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(f"Snapshot record {index}: {message}")


class RuleExtractionError(ValueError):
    """A rule statement references an unknown or cyclic statement."""
