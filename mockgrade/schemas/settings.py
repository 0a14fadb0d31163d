from pydantic import BaseModel, ConfigDict, Field, field_validator

from mockgrade.models import DEFAULT_CORE_SUBJECTS, Grade, GradingMode, SortOrder, Subject
from mockgrade.schemas.base import CamelModel

# Standard normal quantiles at the 95th, 85th, 70th, 50th, 30th, 15th, 5th and 1st percentiles
DEFAULT_Z_THRESHOLDS: dict[str, float] = {
    "A1": 1.645,
    "B2": 1.036,
    "B3": 0.524,
    "C4": 0.0,
    "C5": -0.524,
    "C6": -1.036,
    "D7": -1.645,
    "E8": -2.326,
}

DEFAULT_PERCENTAGE_THRESHOLDS: dict[str, float] = {
    "A1": 80,
    "B2": 70,
    "B3": 65,
    "C4": 60,
    "C5": 55,
    "C6": 50,
    "D7": 45,
    "E8": 40,
}


class GradingThresholds(BaseModel):
    """Lower bound (inclusive) of each band, A1 best to E8 worst. Anything below E8 is F9."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    a1: float = Field(DEFAULT_Z_THRESHOLDS["A1"], alias="A1")
    b2: float = Field(DEFAULT_Z_THRESHOLDS["B2"], alias="B2")
    b3: float = Field(DEFAULT_Z_THRESHOLDS["B3"], alias="B3")
    c4: float = Field(DEFAULT_Z_THRESHOLDS["C4"], alias="C4")
    c5: float = Field(DEFAULT_Z_THRESHOLDS["C5"], alias="C5")
    c6: float = Field(DEFAULT_Z_THRESHOLDS["C6"], alias="C6")
    d7: float = Field(DEFAULT_Z_THRESHOLDS["D7"], alias="D7")
    e8: float = Field(DEFAULT_Z_THRESHOLDS["E8"], alias="E8")

    def bands(self) -> list[tuple[Grade, float]]:
        """Cutoffs ordered from best to worst."""
        return [
            (Grade.A1, self.a1),
            (Grade.B2, self.b2),
            (Grade.B3, self.b3),
            (Grade.C4, self.c4),
            (Grade.C5, self.c5),
            (Grade.C6, self.c6),
            (Grade.D7, self.d7),
            (Grade.E8, self.e8),
        ]


class NormalizationConfig(CamelModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    subject: Subject | None = Field(None, description="Subject the rule applies to; None applies it to every subject")
    max_score: float = Field(100.0, gt=0)
    is_locked: bool = False

    def applies_to(self, subject: Subject) -> bool:
        return self.enabled and (self.subject is None or self.subject == subject)


class SBAConfig(CamelModel):
    """Composite weighting between the school-based assessment and the exam."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    is_locked: bool = False
    sba_weight: float = Field(30.0, ge=0.0, le=100.0)
    exam_weight: float = Field(70.0, ge=0.0, le=100.0)


class CategoryThreshold(CamelModel):
    model_config = ConfigDict(frozen=True)

    label: str
    min: float
    max: float

    @field_validator("max")
    @classmethod
    def validate_min_max(cls, v: float, info) -> float:
        """Validate min <= max."""
        min_val = info.data.get("min") if info.data else None
        if min_val is not None and min_val > v:
            raise ValueError("min must be less than or equal to max")
        return v


DEFAULT_CATEGORY_THRESHOLDS: list[CategoryThreshold] = [
    CategoryThreshold(label="DISTINCTION", min=4, max=12),
    CategoryThreshold(label="MERIT", min=13, max=20),
    CategoryThreshold(label="CREDIT", min=21, max=30),
    CategoryThreshold(label="PASS", min=31, max=40),
    CategoryThreshold(label="BELOW PASS", min=41, max=54),
]


class GlobalSettings(CamelModel):
    """Per-hub configuration consumed by the grading pipeline. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    school_name: str = ""
    school_address: str = ""
    school_number: str = ""
    school_motto: str | None = None
    exam_title: str = ""
    term_info: str = ""
    academic_year: str = ""
    head_teacher_name: str = ""
    active_mock: str = "MOCK 1"
    committed_mocks: list[str] = Field(default_factory=list)
    grading_thresholds: GradingThresholds = Field(default_factory=GradingThresholds)
    grading_mode: GradingMode = GradingMode.NORM
    use_t_distribution: bool = True
    normalization_config: NormalizationConfig = Field(default_factory=NormalizationConfig)
    sba_config: SBAConfig = Field(default_factory=SBAConfig)
    category_thresholds: list[CategoryThreshold] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORY_THRESHOLDS)
    )
    core_subjects: list[Subject] = Field(default_factory=lambda: list(DEFAULT_CORE_SUBJECTS))
    max_section_a: int = Field(40, ge=0)
    max_section_b: int = Field(60, ge=0)
    sort_order: SortOrder = SortOrder.AGGREGATE_ASC
    is_conduct_locked: bool = False

    def is_series_locked(self, series: str) -> bool:
        return series in self.committed_mocks
