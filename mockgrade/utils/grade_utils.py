"""Utility functions for grade assignment and category banding."""

from dataclasses import dataclass
from functools import lru_cache

from scipy import stats

from mockgrade.core.exceptions import ConfigurationError
from mockgrade.models import Grade, GradingMode
from mockgrade.schemas.settings import CategoryThreshold, GradingThresholds
from mockgrade.schemas.statistics import SubjectStatistics

# Grade assigned when no band is satisfied
FALLBACK_GRADE = Grade.F9

GRADE_REMARKS: dict[Grade, str] = {
    Grade.A1: "EXCELLENT",
    Grade.B2: "VERY GOOD",
    Grade.B3: "GOOD",
    Grade.C4: "CREDIT",
    Grade.C5: "CREDIT",
    Grade.C6: "CREDIT",
    Grade.D7: "PASS",
    Grade.E8: "PASS",
    Grade.F9: "FAIL",
}


@dataclass(frozen=True)
class GradeAssignment:
    grade: Grade
    grade_value: int
    z_score: float

    @property
    def remark(self) -> str:
        return GRADE_REMARKS[self.grade]


def validate_grading_thresholds(thresholds: GradingThresholds) -> tuple[bool, str | None]:
    """
    Validate that cutoffs strictly decrease from A1 to E8.

    Returns:
        Tuple of (is_valid, error_message).
    """
    bands = thresholds.bands()
    for (grade, cutoff), (next_grade, next_cutoff) in zip(bands, bands[1:]):
        if next_cutoff >= cutoff:
            return False, (
                f"Grading thresholds must decrease from A1 to E8: "
                f"{grade.value} ({cutoff:g}) is not above {next_grade.value} ({next_cutoff:g})"
            )
    return True, None


@lru_cache(maxsize=512)
def _t_cutoffs(z_cutoffs: tuple[float, ...], degrees_of_freedom: int) -> tuple[float, ...]:
    # Same tail probability, read off the Student t table instead of the normal table
    return tuple(float(stats.t.ppf(stats.norm.cdf(z), degrees_of_freedom)) for z in z_cutoffs)


def resolve_cutoffs(
    thresholds: GradingThresholds,
    mode: GradingMode,
    use_t_distribution: bool = False,
    cohort_size: int = 0,
) -> list[tuple[Grade, float]]:
    """
    Cutoffs to compare against, ordered from best to worst.

    In norm mode with use_t_distribution the z-cutoffs are mapped through the t distribution
    with cohort_size - 1 degrees of freedom. Cohorts under two students keep the normal cutoffs.
    """
    bands = thresholds.bands()
    if mode != GradingMode.NORM or not use_t_distribution or cohort_size < 2:
        return bands
    cutoffs = _t_cutoffs(tuple(cutoff for _, cutoff in bands), cohort_size - 1)
    return [(grade, cutoff) for (grade, _), cutoff in zip(bands, cutoffs)]


def calculate_z_score(score: float, subject_stats: SubjectStatistics) -> float:
    if subject_stats.std_dev == 0:
        return 0.0
    return (score - subject_stats.mean) / subject_stats.std_dev


def assign_grade(
    composite_score: float,
    subject_stats: SubjectStatistics,
    thresholds: GradingThresholds,
    mode: GradingMode = GradingMode.NORM,
    use_t_distribution: bool = False,
) -> GradeAssignment:
    """
    Map a composite score to a grade band.

    Norm mode compares the z-score with z-cutoffs; criterion mode compares the composite
    with percentage cutoffs. Bands are scanned from A1 down and the first cutoff the value
    meets or exceeds wins. Nothing satisfied gives F9.
    """
    z_score = calculate_z_score(composite_score, subject_stats)
    value = z_score if mode == GradingMode.NORM else composite_score

    for grade, cutoff in resolve_cutoffs(thresholds, mode, use_t_distribution, subject_stats.count):
        if value >= cutoff:
            return GradeAssignment(grade=grade, grade_value=grade.value_point, z_score=z_score)

    return GradeAssignment(grade=FALLBACK_GRADE, grade_value=FALLBACK_GRADE.value_point, z_score=z_score)


def validate_category_thresholds(
    bands: list[CategoryThreshold], lowest: int, highest: int
) -> tuple[bool, str | None]:
    """
    Validate that category bands don't overlap and cover every aggregate from lowest to highest.

    Aggregates are whole numbers, so consecutive bands such as 4-12 and 13-20 leave no gap.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not bands:
        return False, "No category thresholds configured"

    sorted_bands = sorted(bands, key=lambda band: band.min)

    for current, next_band in zip(sorted_bands, sorted_bands[1:]):
        if current.max >= next_band.min:
            return False, (
                f"Category bands overlap: {current.label} ({current.min:g}-{current.max:g}) "
                f"overlaps with {next_band.label} ({next_band.min:g}-{next_band.max:g})"
            )

    if sorted_bands[0].min > lowest:
        return False, f"Category bands do not cover the full range. Lowest min is {sorted_bands[0].min:g}, but should start at {lowest}"

    highest_max = max(band.max for band in sorted_bands)
    if highest_max < highest:
        return False, f"Category bands do not cover the full range. Highest max is {highest_max:g}, but should end at {highest}"

    # Fractional bounds can skip a whole aggregate even without overlap (e.g. 4-12.5 then 13.4-54)
    for aggregate in range(lowest, highest + 1):
        if not any(band.min <= aggregate <= band.max for band in sorted_bands):
            return False, f"Category bands have a gap: no band contains aggregate {aggregate}"

    return True, None


def category_for_aggregate(aggregate: int, bands: list[CategoryThreshold]) -> str:
    """
    Label of the first band whose [min, max] contains the aggregate.

    Raises:
        ConfigurationError: If no band contains the aggregate
    """
    for band in bands:
        if band.min <= aggregate <= band.max:
            return band.label
    raise ConfigurationError(f"No category band contains aggregate {aggregate}")
