"""
Scorer input derivation from stored assessment records

- Domain scores: mean of task scores per task type (75 when a domain has no tasks)
- Speech metrics: most recent speech analysis entry, defaults for missing values
- Demographics: age (current year - birth year) and education level from the profile
"""

from dataclasses import fields
from datetime import date
from typing import Dict, List, Optional

from neurorisk.services.risk_scoring import (
    AdditionalFactors,
    CognitiveScores,
    SpeechMetrics,
    round_half_up,
)


DEFAULT_DOMAIN_SCORE = 75

# CognitiveScores field -> stored task_type
DOMAIN_TASK_TYPES = {
    "memory": "memory_recall",
    "attention": "attention",
    "language": "language",
    "executive": "executive_function",
    "visuospatial": "visuospatial",
}


def calculate_domain_score(tasks: List[dict], task_type: str) -> int:
    """Average user score of the tasks of one type"""
    domain_tasks = [t for t in tasks if t.get("task_type") == task_type]
    if not domain_tasks:
        return DEFAULT_DOMAIN_SCORE

    total = sum(t.get("user_score") or 0 for t in domain_tasks)
    return round_half_up(total / len(domain_tasks))


def build_cognitive_scores(tasks: List[dict]) -> CognitiveScores:
    return CognitiveScores(**{
        domain: calculate_domain_score(tasks, task_type)
        for domain, task_type in DOMAIN_TASK_TYPES.items()
    })


def extract_speech_metrics(speech_rows: List[dict]) -> SpeechMetrics:
    """Speech metrics from the latest entry; zero or missing values fall back to defaults"""
    defaults = SpeechMetrics()
    if not speech_rows:
        return defaults

    latest = max(speech_rows, key=lambda row: row.get("created_at") or "")
    values: Dict[str, float] = {}
    # speech_analysis columns share the SpeechMetrics field names
    for f in fields(SpeechMetrics):
        values[f.name] = latest.get(f.name) or getattr(defaults, f.name)
    return SpeechMetrics(**values)


def calculate_age(date_of_birth, today: Optional[date] = None) -> Optional[int]:
    """Age in years as current year minus birth year; None if unknown"""
    if not date_of_birth:
        return None
    try:
        if isinstance(date_of_birth, date):
            birth = date_of_birth
        else:
            birth = date.fromisoformat(str(date_of_birth)[:10])
    except (ValueError, TypeError):
        return None

    today = today or date.today()
    return today.year - birth.year


def build_additional_factors(profile: Optional[dict]) -> AdditionalFactors:
    if not profile:
        return AdditionalFactors()
    return AdditionalFactors(
        age=calculate_age(profile.get("date_of_birth")),
        education_level=profile.get("education_level"),
    )
