import math

import pytest

from mockgrade.models import Subject
from mockgrade.schemas.student import ExamSubScore
from mockgrade.utils.statistics_utils import (
    calculate_percentiles,
    compute_statistics,
    describe_scores,
    mean_and_std,
)

from conftest import SERIES, make_student


def test_mean_and_population_std(criterion_settings):
    students = [
        make_student(100 + i, f"STUDENT {i}", {Subject.SCIENCE: score})
        for i, score in enumerate([60, 70, 80, 90, 100])
    ]

    stats = compute_statistics(students, SERIES, criterion_settings).for_subject(Subject.SCIENCE)

    assert stats.count == 5
    assert stats.mean == pytest.approx(80)
    assert stats.std_dev == pytest.approx(math.sqrt(200))


def test_mean_and_std_edge_cases():
    assert mean_and_std([]) == (0.0, 0.0)
    assert mean_and_std([72.5]) == (72.5, 0.0)


def test_students_without_score_are_excluded(criterion_settings):
    students = [
        make_student(101, "A", {Subject.SCIENCE: 50, Subject.FRENCH: 90}),
        make_student(102, "B", {Subject.SCIENCE: 70}),
    ]

    statistics = compute_statistics(students, SERIES, criterion_settings)

    assert statistics.for_subject(Subject.SCIENCE).count == 2
    assert statistics.for_subject(Subject.FRENCH).count == 1
    assert statistics.for_subject(Subject.FRENCH).std_dev == 0
    # Never scored: empty baseline
    assert Subject.RME not in statistics.subjects
    assert statistics.for_subject(Subject.RME).count == 0


def test_section_statistics_only_count_present_sections(criterion_settings):
    students = [
        make_student(101, "A", {}, sub_scores={Subject.MATHEMATICS: ExamSubScore(section_a=30, section_b=40)}),
        make_student(102, "B", {}, sub_scores={Subject.MATHEMATICS: ExamSubScore(section_a=20)}),
    ]

    stats = compute_statistics(students, SERIES, criterion_settings).for_subject(Subject.MATHEMATICS)

    assert stats.count == 2
    assert stats.section_a_mean == pytest.approx(25)
    assert stats.section_b_mean == pytest.approx(40)
    assert stats.section_b_std_dev == 0


def test_other_series_ignored(criterion_settings):
    students = [make_student(101, "A", {Subject.SCIENCE: 50}, series="MOCK 2")]
    assert compute_statistics(students, SERIES, criterion_settings).subjects == {}


def test_calculate_percentiles():
    result = calculate_percentiles([10, 20, 30, 40, 50], [25, 50, 75])
    assert result == {"25th": 20.0, "50th": 30.0, "75th": 40.0}
    assert calculate_percentiles([], [50]) == {"50th": 0.0}


def test_describe_scores():
    summary = describe_scores([40, 50, 60, 70, 80])
    assert summary["median"] == 60
    assert summary["min"] == 40
    assert summary["max"] == 80
    assert summary["skewness"] == 0
    assert summary["q1"] == 50


def test_describe_scores_small_samples():
    assert describe_scores([])["median"] is None
    summary = describe_scores([55, 65])
    assert summary["median"] == 60
    assert summary["skewness"] is None
