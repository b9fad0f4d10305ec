"""
Dementia risk scoring module

Scoring rules:
- Cognitive score: weighted mean of five domain scores (memory weighted highest)
- Speech score: raw speech measurements normalised to 0-100 "goodness", then weighted
- Overall risk: deficit-weighted inverse combination (higher = higher risk)
- Risk level cutoffs: <30 low, <60 moderate, otherwise high
"""

import logging
import math
import random
from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass
class CognitiveScores:
    """Per-domain cognitive scores (0-100)"""
    memory: float = 75
    attention: float = 75
    language: float = 75
    executive: float = 75
    visuospatial: float = 75


@dataclass
class SpeechMetrics:
    """Raw speech measurements; defaults are used when a recording is missing"""
    speech_rate: float = 120             # words/min
    pause_frequency: float = 8           # pauses/min
    voice_tremor_score: float = 20       # 0-100, higher is worse
    articulation_clarity: float = 85
    semantic_fluency_score: float = 80
    phonemic_fluency_score: float = 75


@dataclass
class AdditionalFactors:
    age: Optional[int] = None
    education_level: Optional[str] = None


@dataclass(frozen=True)
class RiskAssessment:
    cognitive_score: int
    speech_score: int
    memory_score: int
    overall_risk_score: int
    risk_level: RiskLevel
    risk_factors: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    confidence_level: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        data["risk_factors"] = list(self.risk_factors)
        data["recommendations"] = list(self.recommendations)
        return data


class OverallRisk(NamedTuple):
    score: int
    level: RiskLevel
    confidence: float


# Domain weights (sum to 1.0)
COGNITIVE_WEIGHTS = {
    "memory": 0.35,
    "attention": 0.15,
    "language": 0.20,
    "executive": 0.20,
    "visuospatial": 0.10,
}

SPEECH_WEIGHTS = {
    "speech_rate": 0.20,
    "pause_frequency": 0.15,
    "voice_tremor": 0.10,
    "articulation": 0.25,
    "semantic_fluency": 0.15,
    "phonemic_fluency": 0.15,
}

# Deficit weights for the overall risk score
OVERALL_WEIGHTS = {
    "cognitive": 0.5,
    "speech": 0.3,
    "memory": 0.2,
}

# Overall score cutoffs (strict less-than)
RISK_THRESHOLDS = {
    "low": 30,
    "moderate": 60,
    "high": 100,
}

# (base, spread): confidence = base + random() * spread
CONFIDENCE_BANDS = {
    RiskLevel.LOW: (0.85, 0.10),
    RiskLevel.MODERATE: (0.75, 0.15),
    RiskLevel.HIGH: (0.80, 0.15),
}

# Per-domain ladders: (severe cutoff, severe label, mild cutoff, mild label)
COGNITIVE_LADDER = (70, "Significant cognitive impairment detected",
                    85, "Mild cognitive decline observed")
MEMORY_LADDER = (60, "Severe memory impairment",
                 75, "Moderate memory difficulties")
SPEECH_LADDER = (65, "Significant speech and language abnormalities",
                 80, "Mild speech pattern irregularities")

ADVANCED_AGE_CUTOFF = 75
ADVANCED_AGE_FACTOR = "Advanced age (>75 years)"
LOW_EDUCATION_FACTOR = "Limited educational background"

BASE_RECOMMENDATIONS = {
    RiskLevel.HIGH: [
        "Immediate consultation with a neurologist or geriatrician recommended",
        "Comprehensive neuropsychological evaluation advised",
        "Consider brain imaging (MRI) to rule out structural abnormalities",
        "Family members should be informed and involved in care planning",
    ],
    RiskLevel.MODERATE: [
        "Follow-up assessment in 6 months recommended",
        "Consultation with healthcare provider to discuss findings",
        "Consider cognitive training exercises and mental stimulation",
        "Monitor for changes in daily functioning",
    ],
    RiskLevel.LOW: [
        "Continue regular health check-ups",
        "Maintain cognitive engagement through reading, puzzles, and social activities",
        "Follow-up screening in 12-24 months",
        "Maintain healthy lifestyle with regular exercise and balanced diet",
    ],
}

MEMORY_RECOMMENDATION = "Memory training exercises and strategies may be beneficial"
SPEECH_RECOMMENDATION = "Speech therapy evaluation may be helpful"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (float noise trimmed first)"""
    return int(math.floor(round(value, 6) + 0.5))


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def calculate_cognitive_score(scores: CognitiveScores) -> int:
    """Weighted cognitive score (0-100)"""
    weighted = sum(
        _clamp(getattr(scores, domain)) * weight
        for domain, weight in COGNITIVE_WEIGHTS.items()
    )
    return round_half_up(weighted)


def normalize_speech_rate(rate: float) -> int:
    """Speech rate (words/min) -> 0-100, optimal 120-150"""
    if 120 <= rate <= 150:
        return 100
    elif 100 <= rate < 120 or 150 < rate <= 170:
        return 80
    elif 80 <= rate < 100 or 170 < rate <= 200:
        return 60
    else:
        return 40  # very slow or very fast


def normalize_pause_frequency(frequency: float) -> int:
    """Pause frequency (pauses/min) -> 0-100, optimal 5-10"""
    if 5 <= frequency <= 10:
        return 100
    elif 3 <= frequency < 5:
        return 80
    elif 10 < frequency <= 15:
        return 70
    elif 1 <= frequency < 3:
        return 60
    elif 15 < frequency <= 20:
        return 50
    else:
        return 30  # almost no pauses or excessive pausing


def calculate_speech_score(metrics: SpeechMetrics) -> int:
    """Weighted speech score (0-100)"""
    normalized = {
        "speech_rate": normalize_speech_rate(max(0, metrics.speech_rate)),
        "pause_frequency": normalize_pause_frequency(max(0, metrics.pause_frequency)),
        "voice_tremor": 100 - _clamp(metrics.voice_tremor_score),
        "articulation": _clamp(metrics.articulation_clarity),
        "semantic_fluency": _clamp(metrics.semantic_fluency_score),
        "phonemic_fluency": _clamp(metrics.phonemic_fluency_score),
    }
    weighted = sum(normalized[key] * weight for key, weight in SPEECH_WEIGHTS.items())
    return round_half_up(weighted)


def _ladder_factor(score: float, ladder: tuple) -> Optional[str]:
    severe_cutoff, severe_label, mild_cutoff, mild_label = ladder
    if score < severe_cutoff:
        return severe_label
    elif score < mild_cutoff:
        return mild_label
    return None


def identify_risk_factors(
    cognitive_score: float,
    speech_score: float,
    memory_score: float,
    additional_factors: Optional[AdditionalFactors] = None,
) -> List[str]:
    """Risk factor labels in fixed order: cognitive, memory, speech, age, education"""
    risk_factors = []

    for score, ladder in (
        (cognitive_score, COGNITIVE_LADDER),
        (memory_score, MEMORY_LADDER),
        (speech_score, SPEECH_LADDER),
    ):
        factor = _ladder_factor(score, ladder)
        if factor:
            risk_factors.append(factor)

    if additional_factors:
        if additional_factors.age and additional_factors.age > ADVANCED_AGE_CUTOFF:
            risk_factors.append(ADVANCED_AGE_FACTOR)
        if additional_factors.education_level == "low":
            risk_factors.append(LOW_EDUCATION_FACTOR)

    return risk_factors


def generate_recommendations(risk_level: RiskLevel, risk_factors: List[str]) -> List[str]:
    """Base recommendations for the level, then memory/speech specific ones"""
    recommendations = list(BASE_RECOMMENDATIONS[RiskLevel(risk_level)])

    if any("memory" in factor for factor in risk_factors):
        recommendations.append(MEMORY_RECOMMENDATION)
    if any("speech" in factor for factor in risk_factors):
        recommendations.append(SPEECH_RECOMMENDATION)

    return recommendations


def get_risk_level(score: int) -> RiskLevel:
    """Overall risk score -> risk level"""
    if score < RISK_THRESHOLDS["low"]:
        return RiskLevel.LOW
    elif score < RISK_THRESHOLDS["moderate"]:
        return RiskLevel.MODERATE
    else:
        return RiskLevel.HIGH


def calculate_overall_risk(
    cognitive_score: float,
    speech_score: float,
    memory_score: float,
    rng=None,
) -> OverallRisk:
    """Overall risk score, level and jittered confidence

    Args:
        rng: randomness source with a ``random()`` method (e.g. ``random.Random``).
            Defaults to the ``random`` module.
    """
    rng = rng or random
    score = round_half_up(
        (100 - _clamp(cognitive_score)) * OVERALL_WEIGHTS["cognitive"]
        + (100 - _clamp(speech_score)) * OVERALL_WEIGHTS["speech"]
        + (100 - _clamp(memory_score)) * OVERALL_WEIGHTS["memory"]
    )
    level = get_risk_level(score)

    base, spread = CONFIDENCE_BANDS[level]
    confidence = round(base + rng.random() * spread, 2)

    return OverallRisk(score=score, level=level, confidence=confidence)


def generate_full_assessment(
    cognitive_scores: CognitiveScores,
    speech_metrics: SpeechMetrics,
    additional_factors: Optional[AdditionalFactors] = None,
    rng=None,
) -> RiskAssessment:
    """Full risk assessment from cognitive scores, speech metrics and demographics"""
    cognitive_score = calculate_cognitive_score(cognitive_scores)
    speech_score = calculate_speech_score(speech_metrics)
    memory_score = round_half_up(_clamp(cognitive_scores.memory))

    risk_factors = identify_risk_factors(
        cognitive_score, speech_score, memory_score, additional_factors
    )
    overall = calculate_overall_risk(cognitive_score, speech_score, memory_score, rng=rng)
    recommendations = generate_recommendations(overall.level, risk_factors)

    logger.debug(
        "Risk assessment: cognitive=%s speech=%s memory=%s overall=%s level=%s",
        cognitive_score, speech_score, memory_score, overall.score, overall.level.value,
    )

    return RiskAssessment(
        cognitive_score=cognitive_score,
        speech_score=speech_score,
        memory_score=memory_score,
        overall_risk_score=overall.score,
        risk_level=overall.level,
        risk_factors=tuple(risk_factors),
        recommendations=tuple(recommendations),
        confidence_level=overall.confidence,
    )
