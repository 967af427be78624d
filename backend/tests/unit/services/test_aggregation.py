"""
Unit Tests for SGPA / CGPA Aggregation
"""
import pytest

from academia.core.exceptions import ComputationError
from academia.services.aggregation import GradeEntry, aggregate, weighted_average


def entry(points, credits, semester, code=None):
    return GradeEntry(grade_points=points, credits=credits, semester=semester, subject_code=code)


class TestWeightedAverage:

    def test_zero_credits_is_zero(self):
        assert weighted_average(0, 0) == 0.0

    def test_unrounded(self):
        assert weighted_average(10, 3) == pytest.approx(3.3333333)


class TestAggregate:

    def test_empty_result(self):
        result = aggregate([])

        assert result.cgpa == 0.0
        assert result.total_credits == 0
        assert result.grades_count == 0
        assert result.semester_wise == []

    def test_cgpa_is_credit_weighted_not_mean_of_sgpa(self):
        """4-credit O in sem 1 and 2-credit P in sem 2: 8.0, not 7.0"""
        result = aggregate([entry(10, 4, 1), entry(4, 2, 2)])

        assert result.cgpa == 8.0
        assert [s.sgpa for s in result.semester_wise] == [10.0, 4.0]
        assert result.total_credits == 6

    def test_semesters_are_sorted(self):
        result = aggregate([entry(7, 3, 4), entry(9, 4, 2), entry(8, 2, 4)])

        assert [s.semester for s in result.semester_wise] == [2, 4]
        assert result.semester_wise[1].total_credits == 5
        assert result.semester_wise[1].total_grade_points == 37

    def test_sgpa_rounded_to_two_places(self):
        result = aggregate([entry(9, 3, 1), entry(8, 3, 1), entry(8, 3, 1)])

        assert result.semester_wise[0].sgpa == 8.33
        assert result.cgpa == 8.33

    def test_rounding_applies_only_to_reported_figures(self):
        # Per-semester rounding first would give (8.33 * 9 + 7 * 1) / 10 = 8.197
        result = aggregate([entry(9, 3, 1), entry(8, 3, 1), entry(8, 3, 1), entry(7, 1, 2)])

        assert result.cgpa == 8.2

    def test_failed_grade_still_counts_its_credits(self):
        result = aggregate([entry(10, 4, 1), entry(0, 4, 1)])

        assert result.cgpa == 5.0
        assert result.total_credits == 8

    def test_zero_credit_subjects(self):
        result = aggregate([entry(10, 0, 1)])

        assert result.cgpa == 0.0
        assert result.semester_wise[0].sgpa == 0.0
        assert result.grades_count == 1

    def test_overall_grades_kept(self):
        entries = [entry(10, 4, 1, "CS101"), entry(9, 3, 2, "CS201")]
        result = aggregate(entries)

        assert [e.subject_code for e in result.overall_grades] == ["CS101", "CS201"]

    @pytest.mark.parametrize("points,credits", [(11, 4), (-1, 4), (8, -2)])
    def test_inconsistent_stored_grade(self, points, credits):
        with pytest.raises(ComputationError) as exc:
            aggregate([entry(9, 4, 1), entry(points, credits, 2, code="CS999")])

        assert exc.value.status_code == 500
        assert "CS999" in exc.value.message
