"""Series commit endpoint."""

from fastapi import APIRouter, HTTPException, status

from mockgrade.core.exceptions import ConfigurationError, ScoreEntryError
from mockgrade.dependencies.database import DBSessionDep
from mockgrade.services.series_service import commit_series


router = APIRouter(prefix="/api/v1/hubs", tags=["series"])


@router.post("/{hub_id}/series/{series}/commit")
async def commit_hub_series(hub_id: str, series: str, session: DBSessionDep) -> dict:
    """
    Record the series in every student's history, publish the school summary and lock the series.

    A committed series no longer accepts score edits.
    """
    try:
        result, performance = await commit_series(session, hub_id, series)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ScoreEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "series": result.series,
        "studentCount": len(result.students),
        "classAverageAggregate": result.class_average_aggregate,
        "performance": performance.model_dump(mode="json", by_alias=True),
    }
