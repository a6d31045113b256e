from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_actor
from app.core.errors import ConflictError, NotFoundError
from app.models import Expert, Weekday
from app.schemas.expert import DaySlot, ExpertCreate, ExpertDayAvailabilityResponse, ExpertResponse
from app.services import activity_log, availability
from app.services.activity_log import Actor
from database import get_db

router = APIRouter()


@router.get("/experts", response_model=List[ExpertResponse])
def list_experts(db: Session = Depends(get_db)) -> List[ExpertResponse]:
    experts = db.query(Expert).filter(Expert.is_active.is_(True)).order_by(Expert.name).all()
    return [ExpertResponse.model_validate(expert) for expert in experts]


@router.post("/experts", response_model=ExpertResponse, status_code=status.HTTP_201_CREATED)
def create_expert(
    payload: ExpertCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> ExpertResponse:
    expert = Expert(name=payload.name.strip(), email=str(payload.email) if payload.email else None, title=payload.title)
    db.add(expert)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("An expert with this email already exists")
    db.refresh(expert)
    activity_log.record(db, actor, "add_expert", "expert", expert.id, {"name": expert.name, "email": expert.email})
    return ExpertResponse.model_validate(expert)


@router.get("/experts/{expert_id}/availability", response_model=ExpertDayAvailabilityResponse)
def get_expert_availability(
    expert_id: str,
    target_date: date = Query(..., alias="date", description="Date to list bookable start times for"),
    db: Session = Depends(get_db),
) -> ExpertDayAvailabilityResponse:
    expert = db.get(Expert, expert_id)
    if not expert:
        raise NotFoundError("Expert not found")

    slots = availability.day_slots(db, expert_id, target_date)
    return ExpertDayAvailabilityResponse(
        expert_id=expert_id,
        date=target_date,
        day_of_week=Weekday.of(target_date),
        slots=[DaySlot(**slot) for slot in slots],
    )
