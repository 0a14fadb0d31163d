"""Broadsheet, cohort statistics and student report endpoints."""
import logging

from fastapi import APIRouter, HTTPException, Query, status

from mockgrade.core.exceptions import ConfigurationError, StudentNotFoundError
from mockgrade.dependencies.database import DBSessionDep
from mockgrade.models import SortOrder
from mockgrade.schemas.statistics import BroadsheetResult
from mockgrade.services.broadsheet_service import get_broadsheet
from mockgrade.services.result_processing import build_student_report, sort_processed_students
from mockgrade.utils.statistics_utils import describe_scores

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/hubs", tags=["broadsheet"])


async def _load_broadsheet(session, hub_id: str, series: str | None) -> BroadsheetResult:
    try:
        return await get_broadsheet(session, hub_id, series)
    except ConfigurationError as e:
        logger.warning("broadsheet rejected", extra={"hub_id": hub_id, "series": series, "reason": str(e)})
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/{hub_id}/broadsheet")
async def get_hub_broadsheet(
    hub_id: str,
    session: DBSessionDep,
    series: str | None = Query(None, description="Assessment series, defaults to the active mock"),
    sort: SortOrder = Query(SortOrder.AGGREGATE_ASC, description="Display order; ranks are unaffected"),
) -> dict:
    """Processed students, cohort statistics, class average aggregate and diagnostics."""
    result = await _load_broadsheet(session, hub_id, series)
    ordered = result.model_copy(update={"students": sort_processed_students(result.students, sort)})
    return ordered.model_dump(mode="json", by_alias=True)


@router.get("/{hub_id}/statistics")
async def get_hub_statistics(
    hub_id: str,
    session: DBSessionDep,
    series: str | None = Query(None, description="Assessment series, defaults to the active mock"),
) -> dict:
    """Mean and standard deviation per subject, with the composite score distribution."""
    result = await _load_broadsheet(session, hub_id, series)
    distribution = {}
    for subject in result.statistics.subjects:
        composites = [
            computed.final_composite_score
            for student in result.students
            for computed in student.subjects
            if computed.subject == subject
        ]
        distribution[subject.value] = describe_scores(composites)

    return {
        **result.statistics.model_dump(mode="json", by_alias=True),
        "classAverageAggregate": result.class_average_aggregate,
        "distribution": distribution,
    }


@router.get("/{hub_id}/students/{student_id}/report")
async def get_student_report(
    hub_id: str,
    student_id: int,
    session: DBSessionDep,
    series: str | None = Query(None, description="Assessment series, defaults to the active mock"),
) -> dict:
    """One processed student with strengths and weaknesses against the cohort."""
    result = await _load_broadsheet(session, hub_id, series)
    try:
        report = build_student_report(result, student_id)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return report.model_dump(mode="json", by_alias=True)
