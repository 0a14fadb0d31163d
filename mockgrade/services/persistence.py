"""Key-value persistence of hub documents with in-process change notifications."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mockgrade.models import PersistenceRecord
from mockgrade.schemas.settings import GlobalSettings
from mockgrade.schemas.statistics import BroadsheetResult, SchoolRegistryEntry
from mockgrade.schemas.student import StaffAssignment, StudentData

logger = logging.getLogger(__name__)

REGISTRY_PREFIX = "registry_"

ChangeListener = Callable[[str, str], None]

_students_adapter = TypeAdapter(list[StudentData])
_facilitators_adapter = TypeAdapter(dict[str, StaffAssignment])


def settings_id(hub_id: str) -> str:
    return f"{hub_id}_settings"


def students_id(hub_id: str) -> str:
    return f"{hub_id}_students"


def facilitators_id(hub_id: str) -> str:
    return f"{hub_id}_facilitators"


def registry_id(hub_id: str) -> str:
    return f"{REGISTRY_PREFIX}{hub_id}"


def snapshot_id(hub_id: str, series: str) -> str:
    return f"{hub_id}_snapshot_{series.replace(' ', '')}"


class PersistenceStore:
    """Select/upsert over the persistence table. Writes are last-write-wins."""

    def __init__(self):
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a callback(hub_id, record_id) fired after every upsert. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, hub_id: str, record_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(hub_id, record_id)
            except Exception:
                logger.exception("change listener failed", extra={"hub_id": hub_id, "record_id": record_id})

    async def select(self, session: AsyncSession, record_id: str) -> Any | None:
        record = await session.get(PersistenceRecord, record_id)
        return record.payload if record is not None else None

    async def select_hub(self, session: AsyncSession, hub_id: str) -> dict[str, Any]:
        """All payloads of a hub keyed by record id."""
        stmt = select(PersistenceRecord).where(PersistenceRecord.hub_id == hub_id)
        result = await session.execute(stmt)
        return {record.id: record.payload for record in result.scalars().all()}

    async def upsert(
        self,
        session: AsyncSession,
        record_id: str,
        hub_id: str,
        payload: Any,
        user_id: str | None = None,
        notify: bool = True,
        commit: bool = True,
    ) -> None:
        """
        Insert or replace a record.

        With commit=False the write is only flushed into the caller's transaction and no
        listener is notified; the caller commits and notifies once everything is staged.
        """
        record = await session.get(PersistenceRecord, record_id)
        if record is None:
            session.add(PersistenceRecord(id=record_id, hub_id=hub_id, payload=payload, user_id=user_id))
        else:
            record.hub_id = hub_id
            record.payload = payload
            record.updated_at = datetime.utcnow()
            if user_id is not None:
                record.user_id = user_id
        if not commit:
            await session.flush()
            logger.debug("persistence upsert staged", extra={"hub_id": hub_id, "record_id": record_id})
            return
        await session.commit()
        logger.debug("persistence upsert", extra={"hub_id": hub_id, "record_id": record_id})
        if notify:
            self.notify(hub_id, record_id)

    async def fetch_settings(self, session: AsyncSession, hub_id: str) -> GlobalSettings:
        payload = await self.select(session, settings_id(hub_id))
        if payload is None:
            return GlobalSettings(school_number=hub_id)
        return GlobalSettings.model_validate(payload)

    async def save_settings(
        self, session: AsyncSession, hub_id: str, global_settings: GlobalSettings, commit: bool = True
    ) -> None:
        await self.upsert(
            session, settings_id(hub_id), hub_id, global_settings.model_dump(mode="json", by_alias=True), commit=commit
        )

    async def fetch_students(self, session: AsyncSession, hub_id: str) -> list[StudentData]:
        payload = await self.select(session, students_id(hub_id))
        return _students_adapter.validate_python(payload or [])

    async def save_students(
        self, session: AsyncSession, hub_id: str, students: list[StudentData], commit: bool = True
    ) -> None:
        await self.upsert(
            session,
            students_id(hub_id),
            hub_id,
            _students_adapter.dump_python(students, mode="json", by_alias=True),
            commit=commit,
        )

    async def fetch_facilitators(self, session: AsyncSession, hub_id: str) -> dict[str, StaffAssignment]:
        payload = await self.select(session, facilitators_id(hub_id))
        return _facilitators_adapter.validate_python(payload or {})

    async def save_facilitators(
        self, session: AsyncSession, hub_id: str, facilitators: dict[str, StaffAssignment]
    ) -> None:
        await self.upsert(
            session, facilitators_id(hub_id), hub_id, _facilitators_adapter.dump_python(facilitators, mode="json", by_alias=True)
        )

    async def save_computed_snapshot(self, session: AsyncSession, hub_id: str, result: BroadsheetResult) -> None:
        """Store a derived broadsheet. Never read back as authoritative, so no change notification."""
        await self.upsert(
            session,
            snapshot_id(hub_id, result.series),
            hub_id,
            result.model_dump(mode="json", by_alias=True),
            notify=False,
        )

    async def fetch_registry(self, session: AsyncSession, hub_id: str) -> SchoolRegistryEntry | None:
        payload = await self.select(session, registry_id(hub_id))
        if not payload:
            return None
        # Older registry rows hold a one-element list
        if isinstance(payload, list):
            payload = payload[0]
        return SchoolRegistryEntry.model_validate(payload)

    async def save_registry(self, session: AsyncSession, entry: SchoolRegistryEntry, commit: bool = True) -> None:
        await self.upsert(
            session,
            registry_id(entry.id),
            entry.id,
            entry.model_dump(mode="json", by_alias=True),
            notify=False,
            commit=commit,
        )

    async def list_registries(self, session: AsyncSession) -> list[SchoolRegistryEntry]:
        stmt = (
            select(PersistenceRecord)
            .where(PersistenceRecord.id.like(f"{REGISTRY_PREFIX}%"))
            .order_by(PersistenceRecord.id)
        )
        result = await session.execute(stmt)
        entries = []
        for record in result.scalars().all():
            payload = record.payload[0] if isinstance(record.payload, list) else record.payload
            if payload:
                entries.append(SchoolRegistryEntry.model_validate(payload))
        return entries


# Global persistence store instance
persistence_store = PersistenceStore()
