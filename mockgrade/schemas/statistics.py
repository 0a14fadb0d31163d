from pydantic import Field

from mockgrade.models import SchoolStatus, Subject
from mockgrade.schemas.base import CamelModel
from mockgrade.schemas.student import ProcessedStudent


class SubjectStatistics(CamelModel):
    """Cohort baseline for one subject in one series."""

    count: int = 0
    mean: float = 0.0
    std_dev: float = 0.0
    section_a_mean: float = 0.0
    section_a_std_dev: float = 0.0
    section_b_mean: float = 0.0
    section_b_std_dev: float = 0.0


class CohortStatistics(CamelModel):
    series: str
    subjects: dict[Subject, SubjectStatistics] = Field(default_factory=dict)

    def for_subject(self, subject: Subject) -> SubjectStatistics:
        return self.subjects.get(subject, SubjectStatistics())


class DiagnosticEntry(CamelModel):
    """A degraded computation the pipeline recovered from."""

    code: str
    message: str
    subject: Subject | None = None
    student_id: int | None = None


class BroadsheetResult(CamelModel):
    series: str
    statistics: CohortStatistics
    students: list[ProcessedStudent]
    class_average_aggregate: float
    diagnostics: list[DiagnosticEntry] = Field(default_factory=list)


class SubjectAnalysis(CamelModel):
    subject: Subject
    score: float
    cohort_mean: float


class StudentReport(CamelModel):
    series: str
    student: ProcessedStudent
    strengths: list[SubjectAnalysis]
    weaknesses: list[SubjectAnalysis]
    performance_summary: str
    class_average_aggregate: float
    total_enrolled: int


class InstitutionalPerformance(CamelModel):
    mock_series: str
    avg_composite: float
    avg_aggregate: float
    avg_objective: float
    avg_theory: float
    student_count: int
    timestamp: str


class SchoolRegistryEntry(CamelModel):
    id: str
    name: str = ""
    registrant: str = ""
    registrant_email: str = ""
    enrollment_date: str = ""
    student_count: int = 0
    avg_aggregate: float = 0.0
    performance_history: list[InstitutionalPerformance] = Field(default_factory=list)
    status: SchoolStatus = SchoolStatus.ACTIVE
    last_activity: str = ""
