"""Student enrolment and score entry endpoints."""
import logging

from fastapi import APIRouter, HTTPException, Query, status

from mockgrade.core.exceptions import ScoreEntryError, StudentNotFoundError
from mockgrade.dependencies.database import DBSessionDep
from mockgrade.models import Subject
from mockgrade.schemas.student import StudentCreate, SubjectScoreUpdate
from mockgrade.services.persistence import persistence_store
from mockgrade.services.score_entry import enrol_student, record_subject_score

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/hubs", tags=["students"])


@router.get("/{hub_id}/students")
async def list_students(hub_id: str, session: DBSessionDep) -> list[dict]:
    students = await persistence_store.fetch_students(session, hub_id)
    return [student.model_dump(mode="json", by_alias=True) for student in students]


@router.post("/{hub_id}/students", status_code=status.HTTP_201_CREATED)
async def create_student(hub_id: str, student_data: StudentCreate, session: DBSessionDep) -> dict:
    """Enrol a student with the next free id."""
    students = await persistence_store.fetch_students(session, hub_id)
    students = enrol_student(students, student_data)
    await persistence_store.save_students(session, hub_id, students)
    created = students[-1]
    logger.info("student enrolled", extra={"hub_id": hub_id, "student_id": created.id})
    return created.model_dump(mode="json", by_alias=True)


@router.put("/{hub_id}/students/{student_id}/scores/{subject}")
async def update_subject_score(
    hub_id: str,
    student_id: int,
    subject: Subject,
    update: SubjectScoreUpdate,
    session: DBSessionDep,
    series: str | None = Query(None, description="Assessment series, defaults to the active mock"),
) -> dict:
    """Record one subject's scores for a student."""
    global_settings = await persistence_store.fetch_settings(session, hub_id)
    series = series or global_settings.active_mock
    students = await persistence_store.fetch_students(session, hub_id)

    try:
        students = record_subject_score(students, student_id, series, subject, update, global_settings)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ScoreEntryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await persistence_store.save_students(session, hub_id, students)
    updated = next(s for s in students if s.id == student_id)
    return updated.model_dump(mode="json", by_alias=True)
