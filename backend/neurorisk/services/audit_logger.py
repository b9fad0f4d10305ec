"""Audit logging service for tracking user actions on assessments."""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Optional
from neurorisk.models.database import get_db_connection, SimpleDB, _row_to_dict

logger = logging.getLogger(__name__)


def log_action(
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
):
    """Record an audit log entry.

    Args:
        user_id: ID of the user performing the action (None for anonymous).
        action: Action name (e.g. "create_assessment", "analyze_assessment").
        resource_type: Type of resource (e.g. "assessment", "profile").
        resource_id: Optional ID of the affected resource.
        details: Optional dict with extra context.
        ip_address: Client IP address.
    """
    conn = get_db_connection()
    cursor = conn.cursor()
    try:
        log_id = SimpleDB.generate_id()
        now = datetime.now().isoformat()
        details_json = json.dumps(details, ensure_ascii=False) if details else None

        cursor.execute(
            """INSERT INTO audit_logs
               (id, user_id, action, resource_type, resource_id, details, ip_address, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (log_id, user_id, action, resource_type, resource_id, details_json, ip_address, now),
        )
        conn.commit()
    except sqlite3.Error as e:
        logger.warning("Failed to log action %s: %s", action, e)
    finally:
        conn.close()


def get_audit_logs(
    limit: int = 50,
    action: Optional[str] = None,
    resource_id: Optional[str] = None,
) -> list:
    """Retrieve audit logs, newest first, with optional filtering."""
    query = "SELECT * FROM audit_logs WHERE 1=1"
    params = []

    if action:
        query += " AND action = ?"
        params.append(action)
    if resource_id:
        query += " AND resource_id = ?"
        params.append(resource_id)

    query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(limit)

    conn = get_db_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return [_row_to_dict(row) for row in cursor.fetchall()]
    finally:
        conn.close()
