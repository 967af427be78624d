"""
SGPA / CGPA aggregation.

Works on plain `GradeEntry` values so it can be tested without a database;
the grade service selects the rows and hands them over.

SGPA is the credit-weighted mean of grade points within one semester. CGPA
is credit-weighted over every selected grade, not the mean of the semester
SGPAs: one 4-credit O (10) and one 2-credit P (4) in different semesters is
a CGPA of 8.0, while averaging the SGPAs would give 7.0. Rounding is applied
only to the reported figures, never to the sums they come from.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from academia.core.exceptions import ComputationError


@dataclass(frozen=True)
class GradeEntry:
    """One published grade joined with its subject's credits"""
    grade_points: float
    credits: int
    semester: int
    subject_id: Optional[str] = None
    subject_code: Optional[str] = None
    subject_name: Optional[str] = None
    grade: Optional[str] = None
    total_marks: Optional[float] = None
    academic_year: Optional[str] = None
    exam_type: Optional[str] = None

    @property
    def weighted_points(self) -> float:
        return self.grade_points * self.credits


@dataclass
class SemesterSummary:
    semester: int
    sgpa: float
    total_credits: int
    total_grade_points: float
    grades: List[GradeEntry] = field(default_factory=list)


@dataclass
class CGPAResult:
    cgpa: float = 0.0
    total_credits: int = 0
    grades_count: int = 0
    semester_wise: List[SemesterSummary] = field(default_factory=list)
    overall_grades: List[GradeEntry] = field(default_factory=list)


MAX_GRADE_POINTS = 10


def _check(entry: GradeEntry) -> None:
    # Stored grades only ever hold values produced by grading.letter_for_total
    if not 0 <= entry.grade_points <= MAX_GRADE_POINTS or entry.credits < 0:
        raise ComputationError(
            f"Inconsistent grade for subject {entry.subject_code or entry.subject_id}: "
            f"{entry.grade_points} points over {entry.credits} credits"
        )


def weighted_average(weighted_points: float, credits: float) -> float:
    """Unrounded credit-weighted average; 0 when there are no credits"""
    if not credits:
        return 0.0
    return weighted_points / credits


def aggregate(entries: Iterable[GradeEntry]) -> CGPAResult:
    """Build SGPA per semester and the overall CGPA from grade entries"""
    entries = list(entries)
    for entry in entries:
        _check(entry)
    if not entries:
        return CGPAResult()

    by_semester: Dict[int, List[GradeEntry]] = OrderedDict()
    for entry in sorted(entries, key=lambda e: e.semester):
        by_semester.setdefault(entry.semester, []).append(entry)

    semester_wise = []
    for semester, group in by_semester.items():
        credits = sum(e.credits for e in group)
        points = sum(e.weighted_points for e in group)
        semester_wise.append(SemesterSummary(
            semester=semester,
            sgpa=round(weighted_average(points, credits), 2),
            total_credits=credits,
            total_grade_points=points,
            grades=group,
        ))

    total_credits = sum(e.credits for e in entries)
    total_points = sum(e.weighted_points for e in entries)

    return CGPAResult(
        cgpa=round(weighted_average(total_points, total_credits), 2),
        total_credits=total_credits,
        grades_count=len(entries),
        semester_wise=semester_wise,
        overall_grades=entries,
    )
