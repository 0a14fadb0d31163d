import pytest

from mockgrade.core.exceptions import ConfigurationError
from mockgrade.models import Grade, GradingMode
from mockgrade.schemas.settings import (
    DEFAULT_CATEGORY_THRESHOLDS,
    DEFAULT_PERCENTAGE_THRESHOLDS,
    CategoryThreshold,
    GradingThresholds,
)
from mockgrade.schemas.statistics import SubjectStatistics
from mockgrade.utils.grade_utils import (
    assign_grade,
    calculate_z_score,
    category_for_aggregate,
    resolve_cutoffs,
    validate_category_thresholds,
    validate_grading_thresholds,
)

BOUNDARY_THRESHOLDS = GradingThresholds(A1=1.5, B2=1.0, B3=0.5, C4=0.0, C5=-0.5, C6=-1.0, D7=-1.5, E8=-2.0)
PERCENTAGES = GradingThresholds(**DEFAULT_PERCENTAGE_THRESHOLDS)


def test_z_cutoff_is_inclusive():
    stats = SubjectStatistics(count=30, mean=50, std_dev=10)

    assert assign_grade(65, stats, BOUNDARY_THRESHOLDS).grade == Grade.A1
    assert assign_grade(64.9999, stats, BOUNDARY_THRESHOLDS).grade == Grade.B2


def test_zero_std_gives_zero_z():
    stats = SubjectStatistics(count=1, mean=72, std_dev=0)
    assignment = assign_grade(72, stats, BOUNDARY_THRESHOLDS, use_t_distribution=True)
    assert assignment.z_score == 0
    assert assignment.grade == Grade.C4


def test_below_every_cutoff_is_f9():
    stats = SubjectStatistics(count=30, mean=50, std_dev=10)
    assignment = assign_grade(20, stats, BOUNDARY_THRESHOLDS)
    assert assignment.grade == Grade.F9
    assert assignment.grade_value == 9
    assert assignment.remark == "FAIL"


def test_criterion_mode_uses_percentages():
    stats = SubjectStatistics(count=3, mean=90, std_dev=5)
    assert assign_grade(80, stats, PERCENTAGES, GradingMode.CRITERION).grade == Grade.A1
    assert assign_grade(79.99, stats, PERCENTAGES, GradingMode.CRITERION).grade == Grade.B2
    assert assign_grade(39, stats, PERCENTAGES, GradingMode.CRITERION).grade == Grade.F9


def test_grade_is_monotone_in_composite():
    stats = SubjectStatistics(count=12, mean=55, std_dev=12)
    values = [
        assign_grade(score, stats, GradingThresholds(), use_t_distribution=True).grade_value
        for score in range(0, 101)
    ]
    assert values == sorted(values, reverse=True)


def test_t_distribution_widens_cutoffs_for_small_cohorts():
    normal = dict(resolve_cutoffs(GradingThresholds(), GradingMode.NORM, False, 5))
    widened = dict(resolve_cutoffs(GradingThresholds(), GradingMode.NORM, True, 5))

    assert widened[Grade.A1] == pytest.approx(2.132, abs=5e-3)
    assert widened[Grade.A1] > normal[Grade.A1]
    assert widened[Grade.E8] < normal[Grade.E8]
    assert widened[Grade.C4] == pytest.approx(0.0, abs=1e-9)


def test_t_distribution_not_used_for_tiny_cohorts_or_criterion_mode():
    bands = GradingThresholds().bands()
    assert resolve_cutoffs(GradingThresholds(), GradingMode.NORM, True, 1) == bands
    assert resolve_cutoffs(PERCENTAGES, GradingMode.CRITERION, True, 40) == PERCENTAGES.bands()


def test_calculate_z_score():
    assert calculate_z_score(70, SubjectStatistics(mean=50, std_dev=10)) == pytest.approx(2.0)


def test_validate_grading_thresholds():
    assert validate_grading_thresholds(GradingThresholds()) == (True, None)
    is_valid, error_msg = validate_grading_thresholds(
        GradingThresholds(A1=80, B2=80, B3=65, C4=60, C5=55, C6=50, D7=45, E8=40)
    )
    assert not is_valid
    assert "A1" in error_msg


def test_validate_category_thresholds():
    assert validate_category_thresholds(DEFAULT_CATEGORY_THRESHOLDS, 4, 54) == (True, None)

    gap = [CategoryThreshold(label="LOW", min=4, max=10), CategoryThreshold(label="HIGH", min=12, max=54)]
    assert not validate_category_thresholds(gap, 4, 54)[0]

    overlap = [CategoryThreshold(label="LOW", min=4, max=20), CategoryThreshold(label="HIGH", min=20, max=54)]
    assert not validate_category_thresholds(overlap, 4, 54)[0]

    short = [CategoryThreshold(label="ALL", min=4, max=40)]
    assert not validate_category_thresholds(short, 4, 54)[0]


def test_category_threshold_min_above_max_rejected():
    with pytest.raises(ValueError):
        CategoryThreshold(label="BAD", min=20, max=10)


def test_category_for_aggregate():
    assert category_for_aggregate(4, DEFAULT_CATEGORY_THRESHOLDS) == "DISTINCTION"
    assert category_for_aggregate(13, DEFAULT_CATEGORY_THRESHOLDS) == "MERIT"
    assert category_for_aggregate(54, DEFAULT_CATEGORY_THRESHOLDS) == "BELOW PASS"
    with pytest.raises(ConfigurationError):
        category_for_aggregate(60, DEFAULT_CATEGORY_THRESHOLDS)


def test_fractional_bounds_skipping_an_aggregate_rejected():
    bands = [CategoryThreshold(label="LOW", min=4, max=12.5), CategoryThreshold(label="HIGH", min=13.4, max=54)]

    is_valid, error_msg = validate_category_thresholds(bands, 4, 54)

    assert not is_valid
    assert "aggregate 13" in error_msg


def test_fractional_bounds_covering_every_aggregate_accepted():
    bands = [CategoryThreshold(label="LOW", min=3.5, max=12.5), CategoryThreshold(label="HIGH", min=12.6, max=54.2)]
    assert validate_category_thresholds(bands, 4, 54) == (True, None)
