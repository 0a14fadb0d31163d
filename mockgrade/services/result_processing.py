"""Service for grading a cohort: statistics, grades, best-six aggregates and ranks."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from mockgrade.core.exceptions import ConfigurationError, DegradedComputationWarning, StudentNotFoundError
from mockgrade.models import SUBJECT_ORDER, Grade, SortOrder, Subject
from mockgrade.schemas.settings import GlobalSettings
from mockgrade.schemas.statistics import (
    BroadsheetResult,
    CohortStatistics,
    DiagnosticEntry,
    StudentReport,
    SubjectAnalysis,
)
from mockgrade.schemas.student import ComputedSubject, ProcessedStudent, StaffAssignment, StudentData
from mockgrade.utils.grade_utils import (
    assign_grade,
    category_for_aggregate,
    validate_category_thresholds,
    validate_grading_thresholds,
)
from mockgrade.utils.score_utils import validate_weighting
from mockgrade.utils.statistics_utils import ScoredEntry, collect_subject_scores, statistics_from_entries

logger = logging.getLogger(__name__)

ELECTIVES_COUNTED = 2
WORST_GRADE_VALUE = Grade.F9.value_point
# Strength margin above the cohort mean, in composite points
STRENGTH_MARGIN = 5.0
OUTSTANDING_AGGREGATE = 15


def aggregate_bounds(core_count: int) -> tuple[int, int]:
    """Smallest and largest best-six aggregate a student can receive."""
    return core_count, (core_count + ELECTIVES_COUNTED) * WORST_GRADE_VALUE


def facilitator_names(assignments: Iterable[StaffAssignment]) -> dict[Subject, str]:
    """Map each taught subject to the facilitator credited on the broadsheet."""
    names: dict[Subject, str] = {}
    for assignment in assignments:
        if assignment.name and assignment.taught_subject is not None:
            names[assignment.taught_subject] = assignment.name
    return names


def analyse_performance(
    subjects: Sequence[ComputedSubject], statistics: CohortStatistics
) -> tuple[list[SubjectAnalysis], list[SubjectAnalysis]]:
    """Subjects well above the cohort mean (strengths) and below it (weaknesses)."""
    strengths: list[SubjectAnalysis] = []
    weaknesses: list[SubjectAnalysis] = []
    for computed in subjects:
        mean = statistics.for_subject(computed.subject).mean
        analysis = SubjectAnalysis(subject=computed.subject, score=computed.final_composite_score, cohort_mean=mean)
        if computed.final_composite_score >= mean + STRENGTH_MARGIN:
            strengths.append(analysis)
        elif computed.final_composite_score < mean:
            weaknesses.append(analysis)
    return strengths, weaknesses


def describe_weaknesses(weaknesses: Sequence[SubjectAnalysis]) -> str:
    if not weaknesses:
        return "Performing at or above the cohort average in every subject."
    worst = min(weaknesses, key=lambda w: w.score - w.cohort_mean)
    return (
        f"Remedial attention is advised in {worst.subject.value} "
        f"to reach the cohort average of {round(worst.cohort_mean)}%."
    )


def recommendation_for(aggregate: int) -> str:
    if aggregate <= OUTSTANDING_AGGREGATE:
        return "Outstanding result. Continue consistent study habits."
    return "Needs more intensive focus on theoretical applications."


@dataclass
class _GradedStudent:
    student: StudentData
    subjects: list[ComputedSubject]
    best_core: list[ComputedSubject]
    best_electives: list[ComputedSubject]
    aggregate: int
    total_score: float
    weakness_analysis: str


class ResultProcessingService:
    """Service for processing cohort results. Every call is a pure function of its inputs."""

    @staticmethod
    def validate_settings(settings: GlobalSettings) -> None:
        """
        Reject configurations that cannot produce consistent grades.

        Raises:
            ConfigurationError: On inconsistent weights, thresholds, core subjects or category bands
        """
        if settings.sba_config.enabled:
            is_valid, error_msg = validate_weighting(settings.sba_config)
            if not is_valid:
                raise ConfigurationError(error_msg)

        is_valid, error_msg = validate_grading_thresholds(settings.grading_thresholds)
        if not is_valid:
            raise ConfigurationError(error_msg)

        if not settings.core_subjects:
            raise ConfigurationError("At least one core subject must be configured")
        if len(set(settings.core_subjects)) != len(settings.core_subjects):
            raise ConfigurationError("Core subjects must be unique")

        lowest, highest = aggregate_bounds(len(settings.core_subjects))
        is_valid, error_msg = validate_category_thresholds(settings.category_thresholds, lowest, highest)
        if not is_valid:
            raise ConfigurationError(error_msg)

    @staticmethod
    def grade_subject(
        entry: ScoredEntry,
        statistics: CohortStatistics,
        settings: GlobalSettings,
        facilitator: str = "",
    ) -> ComputedSubject:
        assignment = assign_grade(
            entry.composite,
            statistics.for_subject(entry.subject),
            settings.grading_thresholds,
            settings.grading_mode,
            settings.use_t_distribution,
        )
        return ComputedSubject(
            subject=entry.subject,
            score=entry.exam.score,
            section_a=entry.exam.section_a,
            section_b=entry.exam.section_b,
            sba_score=entry.sba_score,
            final_composite_score=entry.composite,
            grade=assignment.grade,
            grade_value=assignment.grade_value,
            remark=assignment.remark,
            z_score=assignment.z_score,
            facilitator=facilitator,
        )

    @staticmethod
    def compute_best_six(
        subjects: Sequence[ComputedSubject], core_subjects: Sequence[Subject]
    ) -> tuple[int, list[ComputedSubject], list[ComputedSubject], list[DegradedComputationWarning]]:
        """
        Sum the grade values of every core subject and the two best electives.

        A core subject without a score counts as F9. With fewer than two electives,
        the ones available are used.

        Returns:
            Tuple of (aggregate, core subjects, counted electives, warnings)
        """
        warnings: list[DegradedComputationWarning] = []
        by_subject = {computed.subject: computed for computed in subjects}

        aggregate = 0
        best_core: list[ComputedSubject] = []
        for subject in core_subjects:
            computed = by_subject.get(subject)
            if computed is None:
                aggregate += WORST_GRADE_VALUE
                warnings.append(
                    DegradedComputationWarning(
                        "missing_core_subject",
                        f"No score recorded for core subject {subject.value}; counted as {Grade.F9.value}",
                        subject=subject,
                    )
                )
            else:
                aggregate += computed.grade_value
                best_core.append(computed)

        electives = sorted(
            (computed for computed in subjects if computed.subject not in core_subjects),
            key=lambda c: (c.grade_value, -c.final_composite_score, SUBJECT_ORDER.index(c.subject)),
        )
        best_electives = electives[:ELECTIVES_COUNTED]
        if len(best_electives) < ELECTIVES_COUNTED:
            warnings.append(
                DegradedComputationWarning(
                    "insufficient_electives",
                    f"Only {len(best_electives)} elective(s) available for the best-six aggregate",
                )
            )
        aggregate += sum(computed.grade_value for computed in best_electives)

        return aggregate, best_core, best_electives, warnings

    @staticmethod
    def rank_key(graded: _GradedStudent) -> tuple[int, float, int]:
        # Aggregate ascending, total composite descending, student id ascending
        return graded.aggregate, -graded.total_score, graded.student.id

    @staticmethod
    def process_cohort(
        students: Sequence[StudentData],
        settings: GlobalSettings,
        series: str | None = None,
        facilitators: Mapping[Subject, str] | None = None,
        hub_id: str | None = None,
    ) -> BroadsheetResult:
        """
        Run the full grading pipeline for one series.

        Pass one normalizes and blends every score and builds the cohort statistics;
        pass two grades each student against them, then aggregates and ranks the cohort.

        Args:
            students: Every student in the cohort
            settings: Grading configuration for the hub
            series: Assessment series, defaults to the active mock
            facilitators: Facilitator name per subject
            hub_id: Used only for log context

        Raises:
            ConfigurationError: If the configuration is inconsistent or two students share an id
        """
        ResultProcessingService.validate_settings(settings)
        series = series or settings.active_mock
        facilitators = facilitators or {}
        snapshot = tuple(students)
        # Scores are grouped by student id, so ids must identify one record each
        seen_ids: set[int] = set()
        for student in snapshot:
            if student.id in seen_ids:
                raise ConfigurationError(f"Student id {student.id} is used by more than one student record")
            seen_ids.add(student.id)
        diagnostics: list[DegradedComputationWarning] = []

        entries = collect_subject_scores(snapshot, series, settings)
        statistics = statistics_from_entries(series, entries)

        for subject, subject_stats in statistics.subjects.items():
            if subject_stats.count < 2:
                diagnostics.append(
                    DegradedComputationWarning(
                        "thin_cohort",
                        f"{subject.value} has {subject_stats.count} scoring student(s); standard deviation is 0",
                        subject=subject,
                    )
                )

        entries_by_student: dict[int, dict[Subject, ScoredEntry]] = {}
        for subject, scored in entries.items():
            for entry in scored:
                entries_by_student.setdefault(entry.student_id, {})[subject] = entry

        graded: list[_GradedStudent] = []
        for student in snapshot:
            student_entries = entries_by_student.get(student.id, {})
            subjects = [
                ResultProcessingService.grade_subject(
                    student_entries[subject], statistics, settings, facilitators.get(subject, "")
                )
                for subject in SUBJECT_ORDER
                if subject in student_entries
            ]
            aggregate, best_core, best_electives, warnings = ResultProcessingService.compute_best_six(
                subjects, settings.core_subjects
            )
            for warning in warnings:
                warning.student_id = student.id
            diagnostics.extend(warnings)

            _, weaknesses = analyse_performance(subjects, statistics)
            graded.append(
                _GradedStudent(
                    student=student,
                    subjects=subjects,
                    best_core=best_core,
                    best_electives=best_electives,
                    aggregate=aggregate,
                    total_score=sum(computed.final_composite_score for computed in subjects),
                    weakness_analysis=describe_weaknesses(weaknesses),
                )
            )

        graded.sort(key=ResultProcessingService.rank_key)
        processed = [
            ProcessedStudent(
                id=item.student.id,
                name=item.student.name,
                email=item.student.email,
                gender=item.student.gender,
                parent_name=item.student.parent_name,
                parent_contact=item.student.parent_contact,
                attendance=item.student.attendance,
                conduct_remark=item.student.conduct_remark,
                subjects=item.subjects,
                total_score=item.total_score,
                best_six_aggregate=item.aggregate,
                best_core_subjects=item.best_core,
                best_elective_subjects=item.best_electives,
                overall_remark=item.student.overall_remark or recommendation_for(item.aggregate),
                weakness_analysis=item.weakness_analysis,
                category=category_for_aggregate(item.aggregate, settings.category_thresholds),
                rank=position,
                series_history=item.student.series_history,
            )
            for position, item in enumerate(graded, start=1)
        ]

        for warning in diagnostics:
            logger.warning(
                "degraded computation",
                extra={
                    "hub_id": hub_id,
                    "series": series,
                    "code": warning.code,
                    "subject": warning.subject.value if warning.subject else None,
                    "student_id": warning.student_id,
                },
            )

        class_average = sum(p.best_six_aggregate for p in processed) / len(processed) if processed else 0.0
        return BroadsheetResult(
            series=series,
            statistics=statistics,
            students=processed,
            class_average_aggregate=class_average,
            diagnostics=[
                DiagnosticEntry(
                    code=warning.code,
                    message=warning.message,
                    subject=warning.subject,
                    student_id=warning.student_id,
                )
                for warning in diagnostics
            ],
        )


def sort_processed_students(students: Sequence[ProcessedStudent], order: SortOrder) -> list[ProcessedStudent]:
    """Display order for the broadsheet. Ranks are unaffected."""
    if order == SortOrder.NAME_ASC:
        return sorted(students, key=lambda s: (s.name, s.id))
    if order == SortOrder.NAME_DESC:
        return sorted(students, key=lambda s: (s.name, s.id), reverse=True)
    if order == SortOrder.ID_ASC:
        return sorted(students, key=lambda s: s.id)
    if order == SortOrder.SCORE_DESC:
        return sorted(students, key=lambda s: (-s.total_score, s.id))
    return sorted(students, key=lambda s: s.rank)


def build_student_report(result: BroadsheetResult, student_id: int) -> StudentReport:
    """
    One student's processed result with strengths and weaknesses against the cohort.

    Raises:
        StudentNotFoundError: If the student is not on the broadsheet
    """
    processed = next((p for p in result.students if p.id == student_id), None)
    if processed is None:
        raise StudentNotFoundError(f"Student {student_id} not found")

    strengths, weaknesses = analyse_performance(processed.subjects, result.statistics)
    return StudentReport(
        series=result.series,
        student=processed,
        strengths=strengths,
        weaknesses=weaknesses,
        performance_summary=recommendation_for(processed.best_six_aggregate),
        class_average_aggregate=result.class_average_aggregate,
        total_enrolled=len(result.students),
    )
