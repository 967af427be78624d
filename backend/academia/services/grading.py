"""
Grade computation.

Turns raw marks into a total, a letter grade and grade points. This runs on
the write path before a grade is persisted; nothing else is allowed to set
the derived fields.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from academia.core.exceptions import ValidationError
from academia.models.grade import GradeLetter

MARK_COMPONENTS: Tuple[str, ...] = ("theory", "practical", "internal")
COMPONENT_MAX = 100
TOTAL_MAX = COMPONENT_MAX * len(MARK_COMPONENTS)
PASSING_GRADE_POINTS = 4

# (minimum total, letter, grade points), highest first
GRADE_SCALE: Tuple[Tuple[float, GradeLetter, int], ...] = (
    (90, GradeLetter.O, 10),
    (80, GradeLetter.A_PLUS, 9),
    (70, GradeLetter.A, 8),
    (60, GradeLetter.B_PLUS, 7),
    (55, GradeLetter.B, 6),
    (50, GradeLetter.C, 5),
    (40, GradeLetter.P, 4),
)


@dataclass(frozen=True)
class GradeComputation:
    theory: float
    practical: float
    internal: float
    total: float
    grade: GradeLetter
    grade_points: int

    @property
    def is_passing(self) -> bool:
        return is_passing(self.grade_points)


def _component(marks: Union[Mapping[str, Any], Any, None], name: str) -> float:
    if marks is None:
        return 0
    if isinstance(marks, Mapping):
        value = marks.get(name)
    else:
        value = getattr(marks, name, None)

    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name.capitalize()} marks must be a number", field=f"marks.{name}")
    # Negated range check so NaN is rejected too
    if not 0 <= value <= COMPONENT_MAX:
        raise ValidationError(
            f"{name.capitalize()} marks must be between 0 and {COMPONENT_MAX}",
            field=f"marks.{name}",
        )
    return value


def letter_for_total(total: float) -> Tuple[GradeLetter, int]:
    """Look up the letter grade and grade points for a total"""
    for minimum, letter, points in GRADE_SCALE:
        if total >= minimum:
            return letter, points
    return GradeLetter.F, 0


def grade_from_marks(marks: Union[Mapping[str, Any], Any, None]) -> GradeComputation:
    """
    Compute total, letter grade and grade points from marks.

    `marks` may be a mapping or any object with theory/practical/internal
    attributes. Missing components count as 0. Raises ValidationError naming
    the offending field when a component is outside [0, 100].
    """
    theory = _component(marks, "theory")
    practical = _component(marks, "practical")
    internal = _component(marks, "internal")

    total = theory + practical + internal
    letter, points = letter_for_total(total)

    return GradeComputation(
        theory=theory,
        practical=practical,
        internal=internal,
        total=total,
        grade=letter,
        grade_points=points,
    )


def absent_grade(marks: Optional[Mapping[str, Any]] = None) -> GradeComputation:
    """
    Override result for a student marked absent.

    Marks are still validated and stored, but the letter is always 'Ab' with
    zero grade points.
    """
    computed = grade_from_marks(marks)
    return GradeComputation(
        theory=computed.theory,
        practical=computed.practical,
        internal=computed.internal,
        total=computed.total,
        grade=GradeLetter.ABSENT,
        grade_points=0,
    )


def is_passing(grade_points: Optional[float]) -> bool:
    """Single definition of a passing result, used by every report"""
    return (grade_points or 0) >= PASSING_GRADE_POINTS


def pass_rate(passing: int, total: int) -> float:
    """Percentage of passing results, 0 when there are no results"""
    if not total:
        return 0.0
    return round(passing / total * 100, 2)
