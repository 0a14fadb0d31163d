import pytest

from mockgrade.core.exceptions import ConfigurationError, StudentNotFoundError
from mockgrade.models import Grade, SortOrder, Subject
from mockgrade.schemas.settings import CategoryThreshold, GlobalSettings, NormalizationConfig, SBAConfig
from mockgrade.schemas.student import ExamSubScore
from mockgrade.services.result_processing import (
    ResultProcessingService,
    aggregate_bounds,
    build_student_report,
    sort_processed_students,
)

from conftest import full_scores, make_student


def codes(result) -> list[str]:
    return [entry.code for entry in result.diagnostics]


def test_aggregate_of_four_cores_and_two_best_electives(criterion_settings):
    student = make_student(
        101,
        "ABENA OFORI",
        {
            Subject.ENGLISH_LANGUAGE: 85,  # A1
            Subject.MATHEMATICS: 72,  # B2
            Subject.SCIENCE: 66,  # B3
            Subject.SOCIAL_STUDIES: 61,  # C4
            Subject.COMPUTING: 90,  # A1
            Subject.FRENCH: 75,  # B2
            Subject.RME: 30,  # F9
        },
    )

    processed = ResultProcessingService.process_cohort([student], criterion_settings).students[0]

    assert processed.best_six_aggregate == 13
    assert processed.category == "MERIT"
    assert [s.subject for s in processed.best_elective_subjects] == [Subject.COMPUTING, Subject.FRENCH]
    assert len(processed.best_core_subjects) == 4


def test_cohort_ranks_and_class_average(criterion_settings, cohort):
    result = ResultProcessingService.process_cohort(cohort, criterion_settings)

    assert [(s.id, s.best_six_aggregate, s.rank) for s in result.students] == [
        (101, 6, 1),
        (102, 14, 2),
        (104, 20, 3),
        (103, 34, 4),
        (105, 50, 5),
    ]
    assert [s.category for s in result.students] == ["DISTINCTION", "MERIT", "MERIT", "PASS", "BELOW PASS"]
    assert result.class_average_aggregate == pytest.approx(24.8)
    assert result.series == "MOCK 1"


def test_ties_broken_by_total_then_id(criterion_settings):
    students = [
        make_student(201, "A", full_scores(85, 80)),
        make_student(202, "B", full_scores(88, 80)),
        make_student(200, "C", full_scores(85, 80)),
    ]

    result = ResultProcessingService.process_cohort(students, criterion_settings)

    assert [s.id for s in result.students] == [202, 200, 201]
    assert [s.rank for s in result.students] == [1, 2, 3]


def test_ranks_are_unique_and_total(norm_settings, cohort):
    result = ResultProcessingService.process_cohort(cohort, norm_settings)
    assert sorted(s.rank for s in result.students) == list(range(1, len(cohort) + 1))


def test_elective_ties_prefer_higher_composite(criterion_settings):
    scores = full_scores(85, 0)
    del scores[Subject.COMPUTING]
    del scores[Subject.FRENCH]
    scores.update(
        {
            Subject.COMPUTING: 75,
            Subject.FRENCH: 78,
            Subject.RME: 90,
            Subject.CREATIVE_ARTS: 72,
        }
    )

    processed = ResultProcessingService.process_cohort(
        [make_student(101, "A", scores)], criterion_settings
    ).students[0]

    assert [s.subject for s in processed.best_elective_subjects] == [Subject.RME, Subject.FRENCH]
    assert processed.best_six_aggregate == 4 + 1 + 2


def test_missing_core_counts_as_f9(criterion_settings):
    scores = full_scores(85, 80)
    del scores[Subject.MATHEMATICS]

    result = ResultProcessingService.process_cohort([make_student(101, "A", scores)], criterion_settings)
    processed = result.students[0]

    assert processed.best_six_aggregate == 3 + 9 + 2
    assert len(processed.best_core_subjects) == 3
    missing = [d for d in result.diagnostics if d.code == "missing_core_subject"]
    assert len(missing) == 1
    assert missing[0].subject == Subject.MATHEMATICS
    assert missing[0].student_id == 101


def test_insufficient_electives_uses_what_is_available(criterion_settings):
    scores = full_scores(85, 80)
    del scores[Subject.FRENCH]

    result = ResultProcessingService.process_cohort([make_student(101, "A", scores)], criterion_settings)

    assert result.students[0].best_six_aggregate == 5
    assert result.students[0].category == "DISTINCTION"
    assert "insufficient_electives" in codes(result)


def test_thin_cohort_reported(norm_settings):
    result = ResultProcessingService.process_cohort(
        [make_student(101, "A", full_scores(85, 80))], norm_settings
    )

    assert "thin_cohort" in codes(result)
    # A single scorer sits exactly on the mean
    assert all(s.z_score == 0 for s in result.students[0].subjects)
    assert all(s.grade == Grade.C4 for s in result.students[0].subjects)


def test_empty_cohort(norm_settings):
    result = ResultProcessingService.process_cohort([], norm_settings)
    assert result.students == []
    assert result.class_average_aggregate == 0


def test_sections_normalized_and_blended_with_sba():
    settings = GlobalSettings(
        max_section_a=60,
        normalization_config=NormalizationConfig(enabled=True, subject=Subject.MATHEMATICS, max_score=100),
        sba_config=SBAConfig(sba_weight=30, exam_weight=70),
    )
    student = make_student(
        101,
        "A",
        {},
        sba_scores={Subject.MATHEMATICS: 80},
        sub_scores={Subject.MATHEMATICS: ExamSubScore(section_a=40)},
    )

    processed = ResultProcessingService.process_cohort([student], settings).students[0]
    mathematics = processed.subjects[0]

    assert mathematics.subject == Subject.MATHEMATICS
    assert mathematics.score == pytest.approx(66.6667, abs=1e-3)
    assert mathematics.final_composite_score == pytest.approx(70.6667, abs=1e-3)
    assert mathematics.sba_score == 80


def test_process_cohort_is_idempotent(norm_settings, cohort):
    first = ResultProcessingService.process_cohort(cohort, norm_settings)
    second = ResultProcessingService.process_cohort(cohort, norm_settings)
    assert first.model_dump() == second.model_dump()


def test_input_order_does_not_change_result(norm_settings, cohort):
    forward = ResultProcessingService.process_cohort(cohort, norm_settings)
    backward = ResultProcessingService.process_cohort(list(reversed(cohort)), norm_settings)
    assert forward.model_dump() == backward.model_dump()


def test_higher_scores_never_worsen_aggregate(criterion_settings, cohort):
    before = ResultProcessingService.process_cohort(cohort, criterion_settings)
    improved = [
        make_student(103, "YAW OWUSU", full_scores(70, 60)) if s.id == 103 else s for s in cohort
    ]
    after = ResultProcessingService.process_cohort(improved, criterion_settings)

    def aggregate_of(result, student_id):
        return next(s.best_six_aggregate for s in result.students if s.id == student_id)

    assert aggregate_of(after, 103) <= aggregate_of(before, 103)


def test_facilitators_and_stored_remark(criterion_settings):
    student = make_student(101, "A", full_scores(85, 80)).model_copy(update={"overall_remark": "Keep it up."})

    processed = ResultProcessingService.process_cohort(
        [student], criterion_settings, facilitators={Subject.SCIENCE: "MR. ANSAH"}
    ).students[0]

    assert processed.overall_remark == "Keep it up."
    science = next(s for s in processed.subjects if s.subject == Subject.SCIENCE)
    assert science.facilitator == "MR. ANSAH"


@pytest.mark.parametrize(
    "update",
    [
        {"sba_config": SBAConfig(sba_weight=40, exam_weight=40)},
        {"core_subjects": []},
        {"core_subjects": [Subject.MATHEMATICS, Subject.MATHEMATICS]},
        {"category_thresholds": [CategoryThreshold(label="ALL", min=4, max=40)]},
        {
            "category_thresholds": [
                CategoryThreshold(label="LOW", min=4, max=12.5),
                CategoryThreshold(label="HIGH", min=13.4, max=54),
            ]
        },
    ],
)
def test_inconsistent_settings_rejected(norm_settings, cohort, update):
    settings = norm_settings.model_copy(update=update)
    with pytest.raises(ConfigurationError):
        ResultProcessingService.process_cohort(cohort, settings)


def test_disabled_sba_skips_weight_check(cohort):
    settings = GlobalSettings(sba_config=SBAConfig(enabled=False, sba_weight=40, exam_weight=40))
    ResultProcessingService.process_cohort(cohort, settings)


def test_aggregate_bounds():
    assert aggregate_bounds(4) == (4, 54)
    assert aggregate_bounds(3) == (3, 45)


def test_sort_processed_students(criterion_settings, cohort):
    students = ResultProcessingService.process_cohort(cohort, criterion_settings).students

    by_name = sort_processed_students(students, SortOrder.NAME_ASC)
    assert [s.name for s in by_name] == sorted(s.name for s in students)
    assert [s.id for s in sort_processed_students(students, SortOrder.ID_ASC)] == [101, 102, 103, 104, 105]
    assert sort_processed_students(students, SortOrder.SCORE_DESC)[0].id == 101
    # Display order never changes ranks
    assert {s.id: s.rank for s in by_name} == {s.id: s.rank for s in students}


def test_student_report(criterion_settings, cohort):
    result = ResultProcessingService.process_cohort(cohort, criterion_settings)

    top = build_student_report(result, 101)
    assert top.student.rank == 1
    assert {a.subject for a in top.strengths} == set(full_scores(0, 0))
    assert top.weaknesses == []
    assert top.total_enrolled == 5
    assert top.performance_summary.startswith("Outstanding")

    bottom = build_student_report(result, 105)
    assert len(bottom.weaknesses) == 6
    assert bottom.student.weakness_analysis.startswith("Remedial attention")

    with pytest.raises(StudentNotFoundError):
        build_student_report(result, 999)


def test_lower_aggregate_always_ranks_higher(norm_settings, cohort):
    students = ResultProcessingService.process_cohort(cohort, norm_settings).students
    for a in students:
        for b in students:
            if a.best_six_aggregate < b.best_six_aggregate:
                assert a.rank < b.rank


def test_mathematics_cohort_composites():
    settings = GlobalSettings(
        max_section_a=60,
        normalization_config=NormalizationConfig(enabled=True, subject=Subject.MATHEMATICS, max_score=100),
    )
    students = [
        make_student(
            101 + i,
            f"STUDENT {i}",
            {},
            sba_scores={Subject.MATHEMATICS: sba},
            sub_scores={Subject.MATHEMATICS: ExamSubScore(section_a=section_a)},
        )
        for i, (section_a, sba) in enumerate([(40, 80), (60, 100), (30, 50)])
    ]

    result = ResultProcessingService.process_cohort(students, settings)
    composites = {
        s.id: next(c.final_composite_score for c in s.subjects if c.subject == Subject.MATHEMATICS)
        for s in result.students
    }

    # 40/60 -> 66.667 on the 100 scale; 66.667 * 0.7 + 80 * 0.3
    assert composites[101] == pytest.approx(70.6667, abs=1e-3)
    assert composites[102] == pytest.approx(100.0)
    assert composites[103] == pytest.approx(50.0)
    assert result.statistics.for_subject(Subject.MATHEMATICS).mean == pytest.approx((70.6667 + 100 + 50) / 3, abs=1e-3)


def test_duplicate_student_ids_rejected(criterion_settings):
    students = [
        make_student(101, "A", full_scores(85, 80)),
        make_student(101, "B", full_scores(40, 30)),
    ]

    with pytest.raises(ConfigurationError, match="101"):
        ResultProcessingService.process_cohort(students, criterion_settings)
