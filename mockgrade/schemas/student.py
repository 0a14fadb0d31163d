from pydantic import Field, field_validator

from mockgrade.models import Grade, StaffRole, Subject
from mockgrade.schemas.base import CamelModel


class ExamSubScore(CamelModel):
    """Raw exam sections for one subject. A section left as None was not sat."""

    section_a: float | None = Field(None, ge=0, description="Objective (section A) raw score")
    section_b: float | None = Field(None, ge=0, description="Theory (section B) raw score")


class Observations(CamelModel):
    facilitator: str = ""
    invigilator: str = ""
    examiner: str = ""


class MockScoreSet(CamelModel):
    """Everything recorded for one student in one assessment series."""

    scores: dict[Subject, float] = Field(default_factory=dict, description="Whole exam score (0-100) when sections were not entered")
    sba_scores: dict[Subject, float] = Field(default_factory=dict)
    exam_sub_scores: dict[Subject, ExamSubScore] = Field(default_factory=dict)
    facilitator_remarks: dict[Subject, str] = Field(default_factory=dict)
    observations: Observations = Field(default_factory=Observations)
    attendance: int | None = None
    conduct_remark: str | None = None

    def has_recorded_score(self, subject: Subject) -> bool:
        sub = self.exam_sub_scores.get(subject)
        if sub is not None and (sub.section_a is not None or sub.section_b is not None):
            return True
        return subject in self.scores


class SubjectPerformance(CamelModel):
    mean: float
    grade: Grade


class MockSeriesRecord(CamelModel):
    aggregate: int
    rank: int
    date: str
    sub_scores: dict[Subject, ExamSubScore] | None = None
    review_status: str | None = None
    is_approved: bool | None = None
    subject_performance_summary: dict[Subject, SubjectPerformance] | None = None


class StudentData(CamelModel):
    id: int
    name: str
    email: str = ""
    gender: str = ""
    parent_name: str | None = None
    parent_contact: str = ""
    attendance: int = 0
    conduct_remark: str | None = None
    overall_remark: str | None = None
    mock_data: dict[str, MockScoreSet] = Field(default_factory=dict)
    series_history: dict[str, MockSeriesRecord] | None = None

    def score_set(self, series: str) -> MockScoreSet | None:
        return self.mock_data.get(series)


class StudentCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: str = ""
    gender: str = "M"
    parent_name: str | None = None
    parent_contact: str = ""

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class SubjectScoreUpdate(CamelModel):
    """Score entry for one subject. Fields left as None are not changed."""

    section_a: float | None = Field(None, ge=0)
    section_b: float | None = Field(None, ge=0)
    exam_score: float | None = Field(None, ge=0, le=100)
    sba_score: float | None = Field(None, ge=0, le=100)
    facilitator_remark: str | None = None


class StaffAssignment(CamelModel):
    name: str
    email: str = ""
    role: StaffRole = StaffRole.FACILITATOR
    enrolled_id: str = ""
    taught_subject: Subject | None = None


class ComputedSubject(CamelModel):
    subject: Subject
    score: float = Field(..., description="Exam score on the normalized scale")
    section_a: float | None = None
    section_b: float | None = None
    sba_score: float
    final_composite_score: float
    grade: Grade
    grade_value: int
    remark: str
    z_score: float
    facilitator: str = ""


class ProcessedStudent(CamelModel):
    id: int
    name: str
    email: str = ""
    gender: str = ""
    parent_name: str | None = None
    parent_contact: str = ""
    attendance: int = 0
    conduct_remark: str | None = None
    subjects: list[ComputedSubject]
    total_score: float
    best_six_aggregate: int
    best_core_subjects: list[ComputedSubject]
    best_elective_subjects: list[ComputedSubject]
    overall_remark: str
    weakness_analysis: str
    category: str
    rank: int
    series_history: dict[str, MockSeriesRecord] | None = None
