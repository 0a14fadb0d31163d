"""Load a hub's inputs and produce its broadsheet."""

from sqlalchemy.ext.asyncio import AsyncSession

from mockgrade.core.cache import get_cached_broadsheet, hub_version, set_cached_broadsheet
from mockgrade.schemas.statistics import BroadsheetResult
from mockgrade.services.persistence import persistence_store
from mockgrade.services.result_processing import ResultProcessingService, facilitator_names


async def compute_broadsheet(session: AsyncSession, hub_id: str, series: str | None = None) -> BroadsheetResult:
    """
    Read settings, students and facilitators, then run the grading pipeline.

    Every input is loaded before the pipeline starts, so it never sees partial data.
    """
    version = hub_version(hub_id)
    global_settings = await persistence_store.fetch_settings(session, hub_id)
    students = await persistence_store.fetch_students(session, hub_id)
    facilitators = await persistence_store.fetch_facilitators(session, hub_id)

    result = ResultProcessingService.process_cohort(
        students,
        global_settings,
        series=series,
        facilitators=facilitator_names(facilitators.values()),
        hub_id=hub_id,
    )
    set_cached_broadsheet(hub_id, result, version)
    return result


async def get_broadsheet(session: AsyncSession, hub_id: str, series: str | None = None) -> BroadsheetResult:
    """Cached broadsheet for the series, computing it on a miss."""
    if series is not None:
        cached = get_cached_broadsheet(hub_id, series)
        if cached is not None:
            return cached
    else:
        global_settings = await persistence_store.fetch_settings(session, hub_id)
        cached = get_cached_broadsheet(hub_id, global_settings.active_mock)
        if cached is not None:
            return cached
    return await compute_broadsheet(session, hub_id, series)
