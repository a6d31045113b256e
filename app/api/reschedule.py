from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.appointments import to_response
from app.api.deps import get_dispatcher
from app.schemas.reschedule import RescheduleDetailResponse, RescheduleRequestResponse, RescheduleResolutionResponse
from app.services import lifecycle, reschedule
from app.services.notifications import EventDispatcher
from database import get_db

router = APIRouter()


@router.get("/reschedule/{token}", response_model=RescheduleDetailResponse)
def get_reschedule_request(token: str, db: Session = Depends(get_db)) -> RescheduleDetailResponse:
    request = reschedule.get_by_token(db, token)
    appointment = lifecycle.get_appointment(db, request.appointment_id)
    return RescheduleDetailResponse(
        request=RescheduleRequestResponse.model_validate(request),
        appointment=to_response(appointment),
    )


@router.post("/reschedule/{token}/approve", response_model=RescheduleResolutionResponse)
def approve_reschedule(
    token: str,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> RescheduleResolutionResponse:
    request = reschedule.approve(db, token, dispatcher=dispatcher)
    appointment = lifecycle.get_appointment(db, request.appointment_id)
    return RescheduleResolutionResponse(
        message="The new appointment time has been confirmed",
        state=request.state,
        appointment=to_response(appointment),
    )


@router.post("/reschedule/{token}/reject", response_model=RescheduleResolutionResponse)
def reject_reschedule(
    token: str,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> RescheduleResolutionResponse:
    request = reschedule.reject(db, token, dispatcher=dispatcher)
    appointment = lifecycle.get_appointment(db, request.appointment_id)
    return RescheduleResolutionResponse(
        message="Your original appointment time is kept",
        state=request.state,
        appointment=to_response(appointment),
    )
