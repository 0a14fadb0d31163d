"""Utility functions for score validation, normalization and composite scoring."""

from dataclasses import dataclass

from mockgrade.core.exceptions import ConfigurationError
from mockgrade.models import Subject
from mockgrade.schemas.settings import GlobalSettings, NormalizationConfig, SBAConfig
from mockgrade.schemas.student import ExamSubScore, MockScoreSet

# Scale of a whole exam score entered without sections
WHOLE_SCORE_MAX = 100.0


def validate_score_range(score: float | None, max_score: float) -> tuple[bool, str | None]:
    """
    Validate that a score value is within the allowed range (0 to max_score).

    Args:
        score: The score value to validate (None means not entered and is always valid)
        max_score: The maximum allowed score value

    Returns:
        Tuple of (is_valid, error_message). error_message is None if valid.
    """
    if score is None:
        return True, None

    # Format max_score to remove unnecessary decimals
    max_score_display = int(max_score) if max_score == int(max_score) else max_score

    if score < 0:
        return False, f"Score cannot be negative. Please enter a value between 0 and {max_score_display}"
    if score > max_score:
        return False, f"Score {score:g} exceeds the maximum of {max_score_display}. Please enter a value between 0 and {max_score_display}"
    return True, None


def validate_weighting(sba_config: SBAConfig) -> tuple[bool, str | None]:
    """
    Validate that the SBA and exam weights sum to 100%.

    Returns:
        Tuple of (is_valid, error_message).
    """
    total = sba_config.sba_weight + sba_config.exam_weight
    # Allow for small floating point errors (within 0.01)
    if abs(total - 100.0) > 0.01:
        return False, (
            f"Weights (sbaWeight={sba_config.sba_weight:g}, examWeight={sba_config.exam_weight:g}) "
            f"sum to {total:g}%, but must sum to 100%"
        )
    return True, None


def normalize(subject: Subject, raw_score: float, max_possible: float, config: NormalizationConfig) -> float:
    """
    Rescale a raw score to the configured maximum when normalization applies to the subject.

    A max_possible of 0 cannot be scaled, so the raw value is passed through.
    """
    if not config.applies_to(subject):
        return raw_score
    if max_possible <= 0:
        return raw_score
    return min(raw_score / max_possible * config.max_score, config.max_score)


@dataclass(frozen=True)
class ExamScore:
    """Raw and normalized exam figures for one student-subject."""

    raw_total: float
    max_possible: float
    score: float
    section_a: float | None
    section_b: float | None


def calculate_exam_score(
    subject: Subject, score_set: MockScoreSet, settings: GlobalSettings
) -> ExamScore | None:
    """
    Combine the sections a student sat into one exam score.

    Only present sections count towards max_possible. Without sections the whole exam
    score (0-100) is used. Returns None if nothing was recorded for the subject.
    """
    sub: ExamSubScore | None = score_set.exam_sub_scores.get(subject)
    if sub is not None and (sub.section_a is not None or sub.section_b is not None):
        raw_total = 0.0
        max_possible = 0.0
        if sub.section_a is not None:
            raw_total += sub.section_a
            max_possible += settings.max_section_a
        if sub.section_b is not None:
            raw_total += sub.section_b
            max_possible += settings.max_section_b
        score = normalize(subject, raw_total, max_possible, settings.normalization_config)
        # Sections are shown on the same scale as the exam score
        factor = score / raw_total if raw_total else 1.0
        return ExamScore(
            raw_total=raw_total,
            max_possible=max_possible,
            score=score,
            section_a=sub.section_a * factor if sub.section_a is not None else None,
            section_b=sub.section_b * factor if sub.section_b is not None else None,
        )

    if subject in score_set.scores:
        raw_total = score_set.scores[subject]
        score = normalize(subject, raw_total, WHOLE_SCORE_MAX, settings.normalization_config)
        return ExamScore(
            raw_total=raw_total,
            max_possible=WHOLE_SCORE_MAX,
            score=score,
            section_a=None,
            section_b=None,
        )

    return None


def compute_composite(exam_normalized: float, sba_raw: float, weighting: SBAConfig) -> float:
    """
    Weighted blend of exam and SBA: exam * examWeight/100 + sba * sbaWeight/100, clamped to [0, 100].

    When SBA is disabled the composite is the exam score alone.

    Raises:
        ConfigurationError: If the weights do not sum to 100%
    """
    if not weighting.enabled:
        return max(0.0, min(100.0, exam_normalized))

    is_valid, error_msg = validate_weighting(weighting)
    if not is_valid:
        raise ConfigurationError(error_msg)

    composite = exam_normalized * (weighting.exam_weight / 100) + sba_raw * (weighting.sba_weight / 100)
    return max(0.0, min(100.0, composite))
