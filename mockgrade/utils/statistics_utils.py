"""Utility functions for calculating cohort statistics."""

import statistics
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from scipy import stats

from mockgrade.models import SUBJECT_ORDER, Subject
from mockgrade.schemas.settings import GlobalSettings
from mockgrade.schemas.statistics import CohortStatistics, SubjectStatistics
from mockgrade.schemas.student import StudentData
from mockgrade.utils.score_utils import ExamScore, calculate_exam_score, compute_composite


@dataclass(frozen=True)
class ScoredEntry:
    """One student's derived scores for one subject (first pass of grading)."""

    student_id: int
    subject: Subject
    exam: ExamScore
    sba_score: float
    composite: float


def collect_subject_scores(
    students: Iterable[StudentData], series: str, settings: GlobalSettings
) -> dict[Subject, list[ScoredEntry]]:
    """
    Normalize and blend every recorded score in the series, grouped by subject.

    Students with no recorded score for a subject are left out of that subject.

    Raises:
        ConfigurationError: If the composite weights are inconsistent
    """
    entries: dict[Subject, list[ScoredEntry]] = {subject: [] for subject in SUBJECT_ORDER}
    for student in students:
        score_set = student.score_set(series)
        if score_set is None:
            continue
        for subject in SUBJECT_ORDER:
            exam = calculate_exam_score(subject, score_set, settings)
            if exam is None:
                continue
            sba = score_set.sba_scores.get(subject, 0.0) if settings.sba_config.enabled else 0.0
            entries[subject].append(
                ScoredEntry(
                    student_id=student.id,
                    subject=subject,
                    exam=exam,
                    sba_score=sba,
                    composite=compute_composite(exam.score, sba, settings.sba_config),
                )
            )
    return {subject: scored for subject, scored in entries.items() if scored}


def mean_and_std(values: Sequence[float]) -> tuple[float, float]:
    """
    Arithmetic mean and population standard deviation.

    No values gives (0, 0); a single value gives (value, 0).
    """
    if not values:
        return 0.0, 0.0
    if len(values) == 1:
        return float(values[0]), 0.0
    return float(statistics.fmean(values)), float(statistics.pstdev(values))


def summarize_subject(scored: Sequence[ScoredEntry]) -> SubjectStatistics:
    mean, std_dev = mean_and_std([entry.composite for entry in scored])
    a_mean, a_std = mean_and_std([entry.exam.section_a for entry in scored if entry.exam.section_a is not None])
    b_mean, b_std = mean_and_std([entry.exam.section_b for entry in scored if entry.exam.section_b is not None])
    return SubjectStatistics(
        count=len(scored),
        mean=mean,
        std_dev=std_dev,
        section_a_mean=a_mean,
        section_a_std_dev=a_std,
        section_b_mean=b_mean,
        section_b_std_dev=b_std,
    )


def statistics_from_entries(series: str, entries: dict[Subject, list[ScoredEntry]]) -> CohortStatistics:
    return CohortStatistics(
        series=series,
        subjects={subject: summarize_subject(scored) for subject, scored in entries.items()},
    )


def compute_statistics(
    students: Iterable[StudentData], series: str, settings: GlobalSettings
) -> CohortStatistics:
    """Per-subject mean and standard deviation across the whole cohort for a series."""
    return statistics_from_entries(series, collect_subject_scores(students, series, settings))


def calculate_percentiles(data: Sequence[float], percentiles: list[float]) -> dict[str, float]:
    """
    Calculate percentiles for a dataset.

    Args:
        data: Sequence of numeric values
        percentiles: List of percentile values (e.g., [25, 50, 75])

    Returns:
        Dictionary mapping percentile names to values (e.g., {"25th": 45.5, ...})
    """
    if not data:
        return {f"{int(p)}th": 0.0 for p in percentiles}

    sorted_data = sorted(data)
    n = len(sorted_data)

    result = {}
    for p in percentiles:
        # Linear interpolation between closest ranks
        index = (p / 100.0) * (n - 1)
        lower = int(index)
        upper = min(lower + 1, n - 1)
        weight = index - lower

        if lower == upper:
            value = sorted_data[lower]
        else:
            value = sorted_data[lower] * (1 - weight) + sorted_data[upper] * weight

        result[f"{int(p)}th"] = round(value, 2)

    return result


def describe_scores(data: Sequence[float]) -> dict[str, float | None]:
    """
    Descriptive statistics of composite scores for the analytics view.

    Returns:
        Dictionary with median, min, max, skewness, kurtosis and quartiles
    """
    if not data:
        return {
            "median": None,
            "min": None,
            "max": None,
            "skewness": None,
            "kurtosis": None,
            "q1": None,
            "q3": None,
        }

    skewness = None
    kurtosis = None
    # Shape statistics are undefined for fewer than three points or constant data
    if len(data) > 2 and max(data) != min(data):
        skewness = round(float(stats.skew(data)), 2)
        kurtosis = round(float(stats.kurtosis(data)), 2)

    quartiles = calculate_percentiles(data, [25, 75])
    return {
        "median": round(statistics.median(data), 2),
        "min": round(min(data), 2),
        "max": round(max(data), 2),
        "skewness": skewness,
        "kurtosis": kurtosis,
        "q1": quartiles["25th"],
        "q3": quartiles["75th"],
    }
