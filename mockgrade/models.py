from datetime import datetime
import enum

from sqlalchemy import JSON, Column, DateTime, String

from mockgrade.dependencies.database import Base


class Subject(enum.Enum):
    ENGLISH_LANGUAGE = "English Language"
    MATHEMATICS = "Mathematics"
    SCIENCE = "Science"
    SOCIAL_STUDIES = "Social Studies"
    CAREER_TECHNOLOGY = "Career Technology"
    CREATIVE_ARTS = "Creative Arts and Designing"
    GHANAIAN_LANGUAGE = "Ghanaian Language"
    RME = "Religious and Moral Education"
    COMPUTING = "Computing"
    FRENCH = "French"


# Broadsheet column order
SUBJECT_ORDER: list[Subject] = list(Subject)

DEFAULT_CORE_SUBJECTS: list[Subject] = [
    Subject.ENGLISH_LANGUAGE,
    Subject.MATHEMATICS,
    Subject.SCIENCE,
    Subject.SOCIAL_STUDIES,
]


class Grade(enum.Enum):
    A1 = "A1"
    B2 = "B2"
    B3 = "B3"
    C4 = "C4"
    C5 = "C5"
    C6 = "C6"
    D7 = "D7"
    E8 = "E8"
    F9 = "F9"

    @property
    def value_point(self) -> int:
        """Ordinal used in aggregate arithmetic: A1 = 1 ... F9 = 9."""
        return int(self.value[1])


class GradingMode(enum.Enum):
    NORM = "norm"  # z-score cutoffs against cohort statistics
    CRITERION = "criterion"  # fixed percentage cutoffs


class SortOrder(enum.Enum):
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"
    ID_ASC = "id-asc"
    SCORE_DESC = "score-desc"
    AGGREGATE_ASC = "aggregate-asc"


class StaffRole(enum.Enum):
    FACILITATOR = "FACILITATOR"
    INVIGILATOR = "INVIGILATOR"
    EXAMINER = "EXAMINER"
    SUPERVISOR = "SUPERVISOR"
    OFFICER = "OFFICER"


class SchoolStatus(enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    AUDIT = "audit"


class PersistenceRecord(Base):
    """Generic key-value row holding one JSON payload per hub document."""

    __tablename__ = "persistence"
    id = Column(String(255), primary_key=True)
    hub_id = Column(String(64), nullable=False, index=True)
    payload = Column(JSON, nullable=True)
    user_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
