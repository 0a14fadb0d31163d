"""Network-wide listing of registered schools."""
from fastapi import APIRouter

from mockgrade.dependencies.database import DBSessionDep
from mockgrade.services.persistence import persistence_store

router = APIRouter(prefix="/api/v1/network", tags=["network"])


@router.get("/schools")
async def list_schools(session: DBSessionDep) -> list[dict]:
    """Every school in the registry with its latest committed series summary."""
    entries = await persistence_store.list_registries(session)
    return [
        {
            "id": entry.id,
            "name": entry.name,
            "studentCount": entry.student_count,
            "avgAggregate": entry.avg_aggregate,
            "status": entry.status.value,
            "lastActivity": entry.last_activity,
            "latestPerformance": (
                entry.performance_history[-1].model_dump(mode="json", by_alias=True)
                if entry.performance_history
                else None
            ),
        }
        for entry in entries
    ]
