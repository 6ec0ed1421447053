"""Advisory activity-log writes for upload and token events."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from src.core.logger import get_logger
from src.storage.models import ActivityLog


logger = get_logger("contentops.activity")


def _json_dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, sort_keys=True, default=str)


def write_activity_log(
    session: Session,
    *,
    action: str,
    resource_type: str,
    resource_id: Optional[str],
    details: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
) -> bool:
    """Insert and commit one activity row.

    Failures are logged and rolled back here and never reach the caller, so an
    upload that already committed stays committed.
    """

    try:
        session.add(
            ActivityLog(
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details_json=_json_dumps(details or {}),
            )
        )
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.warning(
            "activity_log_write_failed",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            error=str(exc),
        )
        return False
    return True
