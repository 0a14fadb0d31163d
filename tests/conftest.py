import os

# The app reads its configuration at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CREATE_TABLES", "true")
os.environ.setdefault("RECOMPUTE_DEBOUNCE_SECONDS", "60")

import pytest

from mockgrade.core.cache import broadsheet_cache
from mockgrade.models import GradingMode, Subject
from mockgrade.schemas.settings import DEFAULT_PERCENTAGE_THRESHOLDS, GlobalSettings, GradingThresholds, SBAConfig
from mockgrade.schemas.student import ExamSubScore, MockScoreSet, StudentData

SERIES = "MOCK 1"


def make_student(
    student_id: int,
    name: str,
    scores: dict[Subject, float],
    sba_scores: dict[Subject, float] | None = None,
    sub_scores: dict[Subject, ExamSubScore] | None = None,
    series: str = SERIES,
) -> StudentData:
    return StudentData(
        id=student_id,
        name=name,
        mock_data={
            series: MockScoreSet(
                scores=scores,
                sba_scores=sba_scores or {},
                exam_sub_scores=sub_scores or {},
            )
        },
    )


def full_scores(core: float, electives: float) -> dict[Subject, float]:
    return {
        Subject.ENGLISH_LANGUAGE: core,
        Subject.MATHEMATICS: core,
        Subject.SCIENCE: core,
        Subject.SOCIAL_STUDIES: core,
        Subject.COMPUTING: electives,
        Subject.FRENCH: electives,
    }


@pytest.fixture(autouse=True)
def clear_broadsheet_cache():
    broadsheet_cache.clear()
    yield
    broadsheet_cache.clear()


@pytest.fixture
def criterion_settings() -> GlobalSettings:
    """Percentage cutoffs with the exam score as the composite."""
    return GlobalSettings(
        grading_mode=GradingMode.CRITERION,
        grading_thresholds=GradingThresholds(**DEFAULT_PERCENTAGE_THRESHOLDS),
        sba_config=SBAConfig(enabled=False),
    )


@pytest.fixture
def norm_settings() -> GlobalSettings:
    return GlobalSettings()


@pytest.fixture
def cohort() -> list[StudentData]:
    return [
        make_student(101, "AMA MENSAH", full_scores(85, 80)),
        make_student(102, "KOFI BOATENG", full_scores(70, 66)),
        make_student(103, "YAW OWUSU", full_scores(55, 45)),
        make_student(104, "ESI ASANTE", full_scores(62, 71)),
        make_student(105, "KWAME ADJEI", full_scores(40, 30)),
    ]
