"""Per-hub grading configuration endpoints."""
import logging

from fastapi import APIRouter, HTTPException, status

from mockgrade.core.exceptions import ConfigurationError
from mockgrade.dependencies.database import DBSessionDep
from mockgrade.schemas.settings import GlobalSettings
from mockgrade.services.persistence import persistence_store
from mockgrade.services.result_processing import ResultProcessingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/hubs", tags=["settings"])


@router.get("/{hub_id}/settings")
async def get_settings(hub_id: str, session: DBSessionDep) -> dict:
    """Get the hub's settings, defaults when none have been saved."""
    global_settings = await persistence_store.fetch_settings(session, hub_id)
    return global_settings.model_dump(mode="json", by_alias=True)


@router.put("/{hub_id}/settings")
async def update_settings(hub_id: str, new_settings: GlobalSettings, session: DBSessionDep) -> dict:
    """Replace the hub's settings after checking they can produce consistent grades."""
    try:
        ResultProcessingService.validate_settings(new_settings)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    current = await persistence_store.fetch_settings(session, hub_id)
    if current.normalization_config.is_locked and new_settings.normalization_config != current.normalization_config:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Normalization configuration is locked",
        )
    if current.sba_config.is_locked and new_settings.sba_config != current.sba_config:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="SBA configuration is locked",
        )
    # Committed series stay locked
    committed = list(dict.fromkeys([*current.committed_mocks, *new_settings.committed_mocks]))
    new_settings = new_settings.model_copy(update={"committed_mocks": committed})

    await persistence_store.save_settings(session, hub_id, new_settings)
    logger.info("settings updated", extra={"hub_id": hub_id, "active_mock": new_settings.active_mock})
    return new_settings.model_dump(mode="json", by_alias=True)
