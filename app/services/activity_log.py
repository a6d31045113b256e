"""Best-effort audit trail for state-changing operations."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import ActivityLogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    id: Optional[str] = None
    name: str = "System"


SYSTEM_ACTOR = Actor()


def record(
    db: Session,
    actor: Actor,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLogEntry | None:
    """
    Append an activity entry in its own commit.

    Call after the triggering change is committed. A failure here is logged
    and swallowed; it never surfaces to the caller.
    """
    try:
        entry = ActivityLogEntry(
            actor_id=actor.id,
            actor_name=actor.name or SYSTEM_ACTOR.name,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=json.dumps(details, ensure_ascii=False, default=str) if details is not None else None,
        )
        db.add(entry)
        db.commit()
        return entry
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Failed to write activity log %s for %s %s: %s", action, entity_type, entity_id, exc)
        return None


def list_entries(
    db: Session,
    action: str | None = None,
    actor_id: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[ActivityLogEntry], int]:
    query = db.query(ActivityLogEntry)
    if action:
        query = query.filter(ActivityLogEntry.action == action)
    if actor_id:
        query = query.filter(ActivityLogEntry.actor_id == actor_id)
    total = query.count()
    entries = (
        query.order_by(ActivityLogEntry.created_at.desc(), ActivityLogEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return entries, total
