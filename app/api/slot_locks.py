from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.schemas.lock import LockCreate, LockReleaseResponse, LockResponse, LockStatusResponse
from app.services import slot_locks
from database import get_db

# Registered before the appointments router so "/appointments/lock/..." wins over "/appointments/{id}".
router = APIRouter()


@router.get(
    "/appointments/lock/check",
    response_model=LockStatusResponse,
    responses={409: {"model": LockStatusResponse, "description": "Slot is held by another session"}},
)
def check_lock(
    expert_id: str = Query(..., alias="expertId"),
    target_date: date = Query(..., alias="date"),
    target_time: time = Query(..., alias="time"),
    current_session_id: Optional[str] = Query(None, alias="currentSessionId"),
    db: Session = Depends(get_db),
):
    locked = slot_locks.is_locked(db, expert_id, target_date, target_time, current_session_id)
    if locked:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"locked": True})
    return LockStatusResponse(locked=False)


@router.post("/appointments/lock/create", response_model=LockResponse, status_code=status.HTTP_201_CREATED)
def create_lock(payload: LockCreate, db: Session = Depends(get_db)) -> LockResponse:
    lock = slot_locks.acquire(db, payload.expert_id, payload.date, payload.time, payload.session_id)
    return LockResponse.model_validate(lock)


@router.delete("/appointments/lock/release/{session_id}", response_model=LockReleaseResponse)
def release_lock(session_id: str, db: Session = Depends(get_db)) -> LockReleaseResponse:
    released = slot_locks.release(db, session_id)
    if not released:
        raise NotFoundError("No lock held by this session")
    return LockReleaseResponse(message="Lock released", released=released)
