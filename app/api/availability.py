from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from app.api.deps import get_actor
from app.models import AvailabilityWindow
from app.schemas.availability import (
    AvailabilityListResponse,
    AvailabilitySetupResponse,
    AvailabilityWindowCreate,
    AvailabilityWindowResponse,
)
from app.schemas.common import MessageResponse
from app.services import activity_log, availability, booking_rules
from app.services.activity_log import Actor
from database import get_db

router = APIRouter()


def _to_response(window: AvailabilityWindow) -> AvailabilityWindowResponse:
    return AvailabilityWindowResponse(
        id=window.id,
        expert_id=window.expert_id,
        expert_name=window.expert.name if window.expert else None,
        day_of_week=window.day_of_week,
        start_time=window.start_time,
        end_time=window.end_time,
        created_at=window.created_at,
    )


def _audit_details(window: AvailabilityWindow) -> dict:
    return {
        "availability_id": window.id,
        "expert_id": window.expert_id,
        "expert_name": window.expert.name if window.expert else None,
        "day_of_week": window.day_of_week,
        "start_time": booking_rules.format_time(window.start_time),
        "end_time": booking_rules.format_time(window.end_time),
    }


@router.get("/availability", response_model=AvailabilityListResponse)
def list_availability(
    expert_id: Optional[str] = Query(None, alias="expertId"),
    db: Session = Depends(get_db),
) -> AvailabilityListResponse:
    windows = availability.list_windows(db, expert_id)
    return AvailabilityListResponse(windows=[_to_response(window) for window in windows])


@router.post("/availability", response_model=AvailabilityWindowResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    payload: AvailabilityWindowCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> AvailabilityWindowResponse:
    window = availability.create_window(db, payload.expert_id, payload.day_of_week, payload.start_time, payload.end_time)
    activity_log.record(db, actor, "add_availability", "availability", window.id, _audit_details(window))
    return _to_response(window)


@router.delete("/availability/{window_id}", response_model=MessageResponse)
def delete_availability(
    window_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> MessageResponse:
    window = (
        db.query(AvailabilityWindow)
        .options(joinedload(AvailabilityWindow.expert))
        .filter(AvailabilityWindow.id == window_id)
        .first()
    )
    details = _audit_details(window) if window else None
    availability.delete_window(db, window_id)
    activity_log.record(db, actor, "remove_availability", "availability", window_id, details)
    return MessageResponse(message="Availability deleted successfully")


@router.post("/availability/setup/all-experts", response_model=AvailabilitySetupResponse)
def setup_all_experts(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> AvailabilitySetupResponse:
    result = availability.setup_default_windows(db)
    activity_log.record(db, actor, "setup_availability", "availability", None, result)
    return AvailabilitySetupResponse(message="Auto-setup completed successfully", **result)
