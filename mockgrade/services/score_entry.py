"""Score entry against a hub's student list."""

import logging
from collections.abc import Sequence

from mockgrade.core.exceptions import ScoreEntryError, StudentNotFoundError
from mockgrade.models import Subject
from mockgrade.schemas.settings import GlobalSettings
from mockgrade.schemas.student import ExamSubScore, MockScoreSet, StudentCreate, StudentData, SubjectScoreUpdate
from mockgrade.utils.score_utils import validate_score_range

logger = logging.getLogger(__name__)

FIRST_STUDENT_ID = 101


def enrol_student(students: Sequence[StudentData], new_student: StudentCreate) -> list[StudentData]:
    """Append a student with the next free id."""
    next_id = max((s.id for s in students), default=FIRST_STUDENT_ID - 1) + 1
    student = StudentData(
        id=next_id,
        name=new_student.name,
        email=new_student.email.lower().strip(),
        gender=new_student.gender,
        parent_name=new_student.parent_name.upper() if new_student.parent_name else None,
        parent_contact=new_student.parent_contact,
    )
    return [*students, student]


def record_subject_score(
    students: Sequence[StudentData],
    student_id: int,
    series: str,
    subject: Subject,
    update: SubjectScoreUpdate,
    settings: GlobalSettings,
) -> list[StudentData]:
    """
    Apply one subject's score entry for a series and return the new student list.

    The input records are not modified.

    Raises:
        StudentNotFoundError: If no student has student_id
        ScoreEntryError: If the series is locked, SBA is locked, or a section exceeds its maximum
    """
    if settings.is_series_locked(series):
        raise ScoreEntryError(f"Series {series} has been committed and can no longer be edited")
    if update.sba_score is not None and settings.sba_config.is_locked:
        raise ScoreEntryError("SBA scores are locked")

    for score, max_score, label in (
        (update.section_a, settings.max_section_a, "Section A"),
        (update.section_b, settings.max_section_b, "Section B"),
    ):
        is_valid, error_msg = validate_score_range(score, max_score)
        if not is_valid:
            raise ScoreEntryError(f"{label}: {error_msg}")

    index = next((i for i, s in enumerate(students) if s.id == student_id), None)
    if index is None:
        raise StudentNotFoundError(f"Student {student_id} not found")

    student = students[index]
    score_set = student.mock_data.get(series, MockScoreSet()).model_copy(deep=True)

    if update.section_a is not None or update.section_b is not None:
        current = score_set.exam_sub_scores.get(subject, ExamSubScore())
        score_set.exam_sub_scores[subject] = ExamSubScore(
            section_a=update.section_a if update.section_a is not None else current.section_a,
            section_b=update.section_b if update.section_b is not None else current.section_b,
        )
    if update.exam_score is not None:
        score_set.scores[subject] = update.exam_score
    if update.sba_score is not None:
        score_set.sba_scores[subject] = update.sba_score
    if update.facilitator_remark is not None:
        score_set.facilitator_remarks[subject] = update.facilitator_remark

    updated = student.model_copy(update={"mock_data": {**student.mock_data, series: score_set}})
    logger.info(
        "score recorded",
        extra={"student_id": student_id, "series": series, "subject": subject.value},
    )
    return [*students[:index], updated, *students[index + 1 :]]
