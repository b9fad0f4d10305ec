"""Profile API router - demographic factors used in risk scoring"""
from datetime import date
from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel
from typing import Optional

from neurorisk.models.database import db
from neurorisk.services.audit_logger import log_action
from neurorisk.utils.request_user import client_ip, require_user

router = APIRouter()


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    education_level: Optional[str] = None  # e.g. "low", "medium", "high"


@router.get("")
async def get_profile(x_user_id: Optional[str] = Header(None)):
    """Caller's profile"""
    user_id = require_user(x_user_id)
    profile = db.get_profile(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.put("")
async def update_profile(
    body: ProfileUpdate,
    req: Request,
    x_user_id: Optional[str] = Header(None),
):
    """Create or update the caller's profile"""
    user_id = require_user(x_user_id)

    update_data = {k: v.isoformat() if isinstance(v, date) else v
                   for k, v in body.model_dump(exclude_none=True).items()}

    profile = db.upsert_profile(user_id, update_data)

    log_action(
        user_id=user_id,
        action="update_profile",
        resource_type="profile",
        resource_id=user_id,
        details={"fields": sorted(update_data.keys())},
        ip_address=client_ip(req),
    )
    return profile
