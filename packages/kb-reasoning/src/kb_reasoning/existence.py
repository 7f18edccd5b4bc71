"""
kb_reasoning/existence.py - Existence levels

Every fact carries a signed level on a fixed five-point scale. Levels only
move upward (see ConceptStore.upgrade_existence).
"""
from __future__ import annotations

from enum import IntEnum


class Existence(IntEnum):
    """Confidence that a fact holds, from impossible to certain."""

    IMPOSSIBLE = -127
    UNPROVEN = -64
    POSSIBLE = 0
    DEMONSTRATED = 64
    CERTAIN = 127


EXISTENCE_MIN = int(Existence.IMPOSSIBLE)
EXISTENCE_MAX = int(Existence.CERTAIN)

# IS_A variants select an existence level at ingestion time
IS_A_EXISTENCE_MAP: dict[str, Existence] = {
    "IS_A_CERTAIN": Existence.CERTAIN,
    "IS_A_DEMONSTRATED": Existence.DEMONSTRATED,
    "IS_A_POSSIBLE": Existence.POSSIBLE,
    "IS_A_UNPROVEN": Existence.UNPROVEN,
}


def is_valid_level(level: object) -> bool:
    """True for integers inside the existence range (bools excluded)."""
    return isinstance(level, int) and not isinstance(level, bool) and EXISTENCE_MIN <= level <= EXISTENCE_MAX


def normalize_is_a(relation: str, existence: int | None) -> tuple[str, int | None]:
    """Map an IS_A_* variant onto IS_A plus its existence level.

    An explicit existence argument wins over the variant's level.
    """
    level = IS_A_EXISTENCE_MAP.get(relation)
    if level is None:
        return relation, existence
    return "IS_A", existence if existence is not None else int(level)
