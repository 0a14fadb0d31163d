"""Committing an assessment series: student history, institutional summary, series lock."""

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from mockgrade.core.exceptions import ScoreEntryError
from mockgrade.models import Subject
from mockgrade.schemas.settings import GlobalSettings
from mockgrade.schemas.statistics import BroadsheetResult, InstitutionalPerformance, SchoolRegistryEntry
from mockgrade.schemas.student import MockSeriesRecord, StudentData, SubjectPerformance
from mockgrade.services.persistence import persistence_store, settings_id, students_id
from mockgrade.services.result_processing import ResultProcessingService, facilitator_names
from mockgrade.utils.grade_utils import assign_grade
from mockgrade.utils.statistics_utils import mean_and_std

logger = logging.getLogger(__name__)


def subject_performance_summary(
    result: BroadsheetResult, settings: GlobalSettings
) -> dict[Subject, SubjectPerformance]:
    """Cohort mean per subject and the grade that mean earns."""
    summary: dict[Subject, SubjectPerformance] = {}
    for subject, subject_stats in result.statistics.subjects.items():
        assignment = assign_grade(
            subject_stats.mean,
            subject_stats,
            settings.grading_thresholds,
            settings.grading_mode,
            settings.use_t_distribution,
        )
        summary[subject] = SubjectPerformance(mean=round(subject_stats.mean, 2), grade=assignment.grade)
    return summary


def build_series_records(
    result: BroadsheetResult,
    students: Sequence[StudentData],
    settings: GlobalSettings,
    date: str,
) -> list[StudentData]:
    """Return the students with this series' aggregate and rank written into their history."""
    processed_by_id = {p.id: p for p in result.students}
    summary = subject_performance_summary(result, settings)

    updated: list[StudentData] = []
    for student in students:
        processed = processed_by_id.get(student.id)
        if processed is None:
            updated.append(student)
            continue
        score_set = student.score_set(result.series)
        record = MockSeriesRecord(
            aggregate=processed.best_six_aggregate,
            rank=processed.rank,
            date=date,
            sub_scores=dict(score_set.exam_sub_scores) if score_set else None,
            review_status="committed",
            is_approved=True,
            subject_performance_summary=summary,
        )
        history = {**(student.series_history or {}), result.series: record}
        updated.append(student.model_copy(update={"series_history": history}))
    return updated


def summarize_institution(result: BroadsheetResult, timestamp: str) -> InstitutionalPerformance:
    """School-level averages for the network console."""
    composites = [s.final_composite_score for p in result.students for s in p.subjects]
    objectives = [s.section_a for p in result.students for s in p.subjects if s.section_a is not None]
    theory = [s.section_b for p in result.students for s in p.subjects if s.section_b is not None]
    return InstitutionalPerformance(
        mock_series=result.series,
        avg_composite=round(mean_and_std(composites)[0], 2),
        avg_aggregate=round(result.class_average_aggregate, 2),
        avg_objective=round(mean_and_std(objectives)[0], 2),
        avg_theory=round(mean_and_std(theory)[0], 2),
        student_count=len(result.students),
        timestamp=timestamp,
    )


async def commit_series(
    session: AsyncSession, hub_id: str, series: str, now: datetime | None = None
) -> tuple[BroadsheetResult, InstitutionalPerformance]:
    """
    Grade the series, record it in every student's history, publish the summary and lock the series.

    Raises:
        ScoreEntryError: If the series is already committed
        ConfigurationError: If the hub's grading configuration is inconsistent
    """
    now = now or datetime.utcnow()
    global_settings = await persistence_store.fetch_settings(session, hub_id)
    if global_settings.is_series_locked(series):
        raise ScoreEntryError(f"Series {series} has already been committed")

    students = await persistence_store.fetch_students(session, hub_id)
    facilitators = await persistence_store.fetch_facilitators(session, hub_id)
    result = ResultProcessingService.process_cohort(
        students,
        global_settings,
        series=series,
        facilitators=facilitator_names(facilitators.values()),
        hub_id=hub_id,
    )

    updated_students = build_series_records(result, students, global_settings, now.date().isoformat())
    performance = summarize_institution(result, now.isoformat())
    registry = await persistence_store.fetch_registry(session, hub_id) or SchoolRegistryEntry(
        id=hub_id, name=global_settings.school_name, enrollment_date=now.date().isoformat()
    )
    history = [p for p in registry.performance_history if p.mock_series != series]
    registry = registry.model_copy(
        update={
            "name": global_settings.school_name or registry.name,
            "student_count": len(students),
            "avg_aggregate": performance.avg_aggregate,
            "performance_history": [*history, performance],
            "last_activity": now.isoformat(),
        }
    )
    locked = global_settings.model_copy(update={"committed_mocks": [*global_settings.committed_mocks, series]})

    # History, registry and lock land together or not at all
    try:
        await persistence_store.save_students(session, hub_id, updated_students, commit=False)
        await persistence_store.save_registry(session, registry, commit=False)
        await persistence_store.save_settings(session, hub_id, locked, commit=False)
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("series commit rolled back", extra={"hub_id": hub_id, "series": series})
        raise

    persistence_store.notify(hub_id, students_id(hub_id))
    persistence_store.notify(hub_id, settings_id(hub_id))

    logger.info(
        "series committed",
        extra={"hub_id": hub_id, "series": series, "students": len(result.students)},
    )
    return result, performance
