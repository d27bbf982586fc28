"""Grade aggregation.

Computes the final score of one student in one evaluation period from
four component scores:

    raw = 0.2 * test1 + 0.2 * test2 + 0.3 * practical_exam + 0.3 * theory_exam

The result is rounded half up (9.5 -> 10, never banker's rounding) and
clamped to [0, 20]. Arithmetic is done in Decimal so that boundary values
such as 9.5 are not shifted by binary floating point.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from progression.core.errors import ValidationError

MIN_SCORE = 0
MAX_SCORE = 20

COMPONENT_WEIGHTS: dict[str, Decimal] = {
    "test1": Decimal("0.2"),
    "test2": Decimal("0.2"),
    "practical_exam": Decimal("0.3"),
    "theory_exam": Decimal("0.3"),
}


@dataclass(frozen=True)
class ComponentScores:
    """The four component scores of one period."""

    test1: float
    test2: float
    practical_exam: float
    theory_exam: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for JSON serialization."""
        return {
            "test1": self.test1,
            "test2": self.test2,
            "practical_exam": self.practical_exam,
            "theory_exam": self.theory_exam,
        }


def round_half_up(value: Any) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_component_score(name: str, value: Any) -> Decimal:
    """Check that a component score is a number in [0, 20].

    Raises:
        ValidationError: If the score is missing, not numeric or out of range
    """
    if value is None:
        raise ValidationError(f"Missing component score: {name}")
    if isinstance(value, bool):
        raise ValidationError(f"Component score {name} must be a number")

    try:
        score = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Component score {name} must be a number: {value!r}") from None

    if not score.is_finite():
        raise ValidationError(f"Component score {name} must be finite")
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(
            f"Component score {name}={value} outside [{MIN_SCORE}, {MAX_SCORE}]"
        )
    return score


def compute_raw_score(
    test1: float,
    test2: float,
    practical_exam: float,
    theory_exam: float,
) -> Decimal:
    """Weighted period score as an exact Decimal, not rounded."""
    values = {
        "test1": test1,
        "test2": test2,
        "practical_exam": practical_exam,
        "theory_exam": theory_exam,
    }
    return sum(
        (COMPONENT_WEIGHTS[name] * validate_component_score(name, value)
         for name, value in values.items()),
        Decimal("0"),
    )


def compute_final_score(
    test1: float,
    test2: float,
    practical_exam: float,
    theory_exam: float,
) -> int:
    """Compute the integer final score of a period.

    Args:
        test1: Test 1 score (20%)
        test2: Test 2 score (20%)
        practical_exam: Practical exam score (30%)
        theory_exam: Theory exam score (30%)

    Returns:
        Final score in [0, 20]

    Raises:
        ValidationError: If any component is outside [0, 20]
    """
    raw = compute_raw_score(test1, test2, practical_exam, theory_exam)
    return max(MIN_SCORE, min(MAX_SCORE, round_half_up(raw)))


def final_score_for(scores: ComponentScores) -> int:
    """compute_final_score over a ComponentScores bundle."""
    return compute_final_score(
        scores.test1, scores.test2, scores.practical_exam, scores.theory_exam
    )
