"""Decoding of the grading model's free-text answer.

The grading prompt asks the model to answer in this shape::

    #### 最终评分
      5分
    <explanation ...>

The first line carries the marker, and the first character of the second
line is a digit whose bits flag which answer tiers were covered. The
outcome is decided by the first tier that was *not* covered: missing the
first tier is a fail, missing only the second means BASIC, and so on.

Decoding is pure and total: malformed text yields FAILED, never an error.
"""

from .core.types import GradeOutcome

__all__ = ["MARKER", "decode_grade", "find_first_zero_bit"]

MARKER = "最终评分"

_OUTCOME_BY_ZERO_BIT = {
    1: GradeOutcome.BASIC,
    2: GradeOutcome.INTERMEDIATE,
    3: GradeOutcome.ADVANCED,
}


def find_first_zero_bit(value: int) -> int:
    """Position (0..7) of the lowest zero bit in ``value``, or 8 if none.

    Example:
        >>> find_first_zero_bit(5)   # 0b101
        1
        >>> find_first_zero_bit(7)   # 0b111
        3
    """
    for position in range(8):
        if not (value >> position) & 1:
            return position
    return 8


def decode_grade(text: str) -> GradeOutcome:
    """Map the model's answer text to a GradeOutcome.

    Args:
        text: Raw answer text from the grading model

    Returns:
        BASIC, INTERMEDIATE or ADVANCED for a well-formed score digit,
        FAILED for anything else
    """
    if not text:
        return GradeOutcome.FAILED

    lines = text.strip().split("\n", 2)
    if len(lines) < 2 or MARKER not in lines[0]:
        return GradeOutcome.FAILED

    score_line = lines[1].lstrip()
    if not score_line or score_line[0] not in "0123456789":
        return GradeOutcome.FAILED

    position = find_first_zero_bit(int(score_line[0]))
    return _OUTCOME_BY_ZERO_BIT.get(position, GradeOutcome.FAILED)
