"""Assessment API router - tasks, speech entries and risk analysis"""
import os
import logging
import sqlite3
from datetime import datetime
from fastapi import APIRouter, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

from neurorisk.models.database import db
from neurorisk.services.assessment_inputs import (
    build_additional_factors,
    build_cognitive_scores,
    extract_speech_metrics,
)
from neurorisk.services.audit_logger import get_audit_logs, log_action
from neurorisk.services.cache_service import cache
from neurorisk.services.risk_scoring import generate_full_assessment
from neurorisk.utils.request_user import client_ip, require_user

logger = logging.getLogger(__name__)

router = APIRouter()

AI_MODEL_VERSION = os.getenv("AI_MODEL_VERSION", "v1.0.0")


class AssessmentCreate(BaseModel):
    assessment_type: str = Field(..., min_length=1)
    language: str = "en"


class AssessmentUpdate(BaseModel):
    status: Optional[Literal["in_progress", "completed"]] = None
    notes: Optional[str] = None


class TaskResultCreate(BaseModel):
    task_type: str = Field(..., min_length=1)  # memory_recall, attention, language, ...
    task_name: Optional[str] = None
    instructions: Optional[str] = None
    max_score: int = 100
    user_score: Optional[float] = None
    response_time_ms: Optional[int] = None
    user_response: Optional[Any] = None


class SpeechAnalysisCreate(BaseModel):
    speech_rate: Optional[float] = None
    pause_frequency: Optional[float] = None
    voice_tremor_score: Optional[float] = None
    articulation_clarity: Optional[float] = None
    semantic_fluency_score: Optional[float] = None
    phonemic_fluency_score: Optional[float] = None


def _get_owned_assessment(assessment_id: str, user_id: str) -> dict:
    assessment = db.get_assessment(assessment_id, user_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment


@router.post("/")
async def create_assessment(
    body: AssessmentCreate,
    req: Request,
    x_user_id: Optional[str] = Header(None),
):
    """Start a new assessment"""
    user_id = require_user(x_user_id)

    assessment = db.create_assessment({
        "user_id": user_id,
        "assessment_type": body.assessment_type,
        "language": body.language,
    })
    cache.invalidate_assessments(user_id)

    log_action(
        user_id=user_id,
        action="create_assessment",
        resource_type="assessment",
        resource_id=assessment["id"],
        details={"assessment_type": body.assessment_type},
        ip_address=client_ip(req),
    )
    return assessment


@router.get("/")
async def get_assessments(
    limit: int = Query(default=50, ge=1, le=100),
    x_user_id: Optional[str] = Header(None),
):
    """Caller's assessments with their risk scores, newest first"""
    user_id = require_user(x_user_id)

    cached = cache.get_assessment_list(user_id)
    if cached is not None:
        return cached[:limit]

    assessments = db.get_user_assessments(user_id, limit=100)
    for assessment in assessments:
        assessment["risk_scores"] = db.get_risk_scores(assessment["id"])
    cache.set_assessment_list(user_id, assessments)
    return assessments[:limit]


@router.get("/{assessment_id}")
async def get_assessment(assessment_id: str, x_user_id: Optional[str] = Header(None)):
    """Assessment with tasks, speech entries and risk scores"""
    user_id = require_user(x_user_id)
    assessment = _get_owned_assessment(assessment_id, user_id)

    assessment["assessment_tasks"] = db.get_assessment_tasks(assessment_id)
    assessment["speech_analysis"] = db.get_speech_analysis(assessment_id)
    assessment["risk_scores"] = db.get_risk_scores(assessment_id)
    return assessment


@router.patch("/{assessment_id}")
async def update_assessment(
    assessment_id: str,
    body: AssessmentUpdate,
    req: Request,
    x_user_id: Optional[str] = Header(None),
):
    """Update status / notes"""
    user_id = require_user(x_user_id)
    _get_owned_assessment(assessment_id, user_id)

    update_data = body.model_dump(exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")
    if update_data.get("status") == "completed":
        update_data["completed_at"] = datetime.now().isoformat()

    result = db.update_assessment(assessment_id, update_data)
    cache.invalidate_assessments(user_id)

    log_action(
        user_id=user_id,
        action="update_assessment",
        resource_type="assessment",
        resource_id=assessment_id,
        details={k: v for k, v in update_data.items() if k != "notes"},
        ip_address=client_ip(req),
    )
    return result


@router.post("/{assessment_id}/tasks")
async def record_task(
    assessment_id: str,
    body: TaskResultCreate,
    req: Request,
    x_user_id: Optional[str] = Header(None),
):
    """Record a completed cognitive/speech task"""
    user_id = require_user(x_user_id)
    _get_owned_assessment(assessment_id, user_id)

    data = body.model_dump()
    data["assessment_id"] = assessment_id
    task = db.create_task(data)

    log_action(
        user_id=user_id,
        action="record_task",
        resource_type="assessment",
        resource_id=assessment_id,
        details={"task_type": body.task_type, "user_score": body.user_score},
        ip_address=client_ip(req),
    )
    return task


@router.post("/{assessment_id}/speech")
async def record_speech(
    assessment_id: str,
    body: SpeechAnalysisCreate,
    req: Request,
    x_user_id: Optional[str] = Header(None),
):
    """Record a speech analysis entry"""
    user_id = require_user(x_user_id)
    _get_owned_assessment(assessment_id, user_id)

    data = body.model_dump()
    data["assessment_id"] = assessment_id
    entry = db.create_speech_analysis(data)

    log_action(
        user_id=user_id,
        action="record_speech",
        resource_type="assessment",
        resource_id=assessment_id,
        ip_address=client_ip(req),
    )
    return entry


@router.post("/{assessment_id}/analyze")
async def analyze_assessment(
    assessment_id: str,
    req: Request,
    x_user_id: Optional[str] = Header(None),
):
    """Score the assessment and store the risk result"""
    user_id = require_user(x_user_id)
    _get_owned_assessment(assessment_id, user_id)

    tasks = db.get_assessment_tasks(assessment_id)
    speech_rows = db.get_speech_analysis(assessment_id)
    profile = db.get_profile(user_id)

    risk_assessment = generate_full_assessment(
        build_cognitive_scores(tasks),
        extract_speech_metrics(speech_rows),
        build_additional_factors(profile),
    )
    result = risk_assessment.to_dict()

    try:
        risk_score = db.save_risk_result({
            "assessment_id": assessment_id,
            **result,
            "ai_model_version": AI_MODEL_VERSION,
        })
    except sqlite3.Error as e:
        logger.error("Failed to save risk assessment for %s: %s", assessment_id, e)
        raise HTTPException(status_code=500, detail="Failed to save risk assessment")

    cache.invalidate_assessments(user_id)
    cache.invalidate_results(assessment_id)

    log_action(
        user_id=user_id,
        action="analyze_assessment",
        resource_type="assessment",
        resource_id=assessment_id,
        details={
            "overall_risk_score": result["overall_risk_score"],
            "risk_level": result["risk_level"],
            "ai_model_version": AI_MODEL_VERSION,
        },
        ip_address=client_ip(req),
    )
    logger.info(
        "Assessment %s analyzed: overall=%s level=%s",
        assessment_id, result["overall_risk_score"], result["risk_level"],
    )

    return {
        "success": True,
        "risk_assessment": result,
        "risk_score_id": risk_score["id"],
    }


@router.get("/{assessment_id}/results")
async def get_results(assessment_id: str, x_user_id: Optional[str] = Header(None)):
    """Latest stored risk score of an assessment"""
    user_id = require_user(x_user_id)
    _get_owned_assessment(assessment_id, user_id)

    cached = cache.get_results(assessment_id)
    if cached is not None:
        return cached

    risk_score = db.get_latest_risk_score(assessment_id)
    if not risk_score:
        raise HTTPException(status_code=404, detail="Assessment has not been analyzed")

    cache.set_results(assessment_id, risk_score)
    return risk_score


@router.get("/{assessment_id}/history")
async def get_history(
    assessment_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    x_user_id: Optional[str] = Header(None),
):
    """Audit trail of an assessment, newest first"""
    user_id = require_user(x_user_id)
    _get_owned_assessment(assessment_id, user_id)
    return get_audit_logs(limit=limit, resource_id=assessment_id)
