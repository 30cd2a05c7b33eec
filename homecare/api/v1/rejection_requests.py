from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from homecare.api.deps import get_current_provider, require_roles
from homecare.api.pagination import LimitParam, OffsetParam
from homecare.db.models import ProviderProfile, RejectionStatus, User, UserRole
from homecare.db.session import get_db
from homecare.schemas.booking import BookingResponse
from homecare.schemas.rejection import (
    RejectionCreateRequest,
    RejectionDecisionRequest,
    RejectionDecisionResponse,
    RejectionResponse,
)
from homecare.services import rejection_service

router = APIRouter(prefix="/rejection-requests", tags=["rejection-requests"])


def _decision_response(rejection, booking) -> RejectionDecisionResponse:
    return RejectionDecisionResponse(
        request=RejectionResponse.model_validate(rejection),
        booking=BookingResponse.model_validate(booking),
    )


@router.get("", response_model=list[RejectionResponse], status_code=status.HTTP_200_OK)
def list_rejection_requests(
    status_filter: RejectionStatus | None = Query(default=None, alias="status"),
    limit: LimitParam = 50,
    offset: OffsetParam = 0,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[RejectionResponse]:
    rejections = rejection_service.list_rejections(db=db, status_filter=status_filter, limit=limit, offset=offset)
    return [RejectionResponse.model_validate(rejection) for rejection in rejections]


@router.get("/me", response_model=list[RejectionResponse], status_code=status.HTTP_200_OK)
def list_my_rejection_requests(
    limit: LimitParam = 50,
    offset: OffsetParam = 0,
    profile: ProviderProfile = Depends(get_current_provider),
    db: Session = Depends(get_db),
) -> list[RejectionResponse]:
    rejections = rejection_service.list_rejections(db=db, provider_id=profile.id, limit=limit, offset=offset)
    return [RejectionResponse.model_validate(rejection) for rejection in rejections]


@router.post("", response_model=RejectionResponse, status_code=status.HTTP_201_CREATED)
def create_rejection_request(
    payload: RejectionCreateRequest,
    current_user: User = Depends(require_roles(UserRole.PROVIDER)),
    db: Session = Depends(get_db),
) -> RejectionResponse:
    rejection = rejection_service.request_rejection(
        db=db,
        booking_id=payload.booking_id,
        provider_user=current_user,
        reason=payload.reason,
    )
    return RejectionResponse.model_validate(rejection)


@router.post("/{request_id}/approve", response_model=RejectionDecisionResponse, status_code=status.HTTP_200_OK)
def approve_rejection_request(
    request_id: int,
    payload: RejectionDecisionRequest | None = None,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> RejectionDecisionResponse:
    rejection, booking = rejection_service.approve_rejection(
        db=db,
        request_id=request_id,
        admin=current_user,
        admin_notes=payload.admin_notes if payload else None,
    )
    return _decision_response(rejection, booking)


@router.post("/{request_id}/deny", response_model=RejectionDecisionResponse, status_code=status.HTTP_200_OK)
def deny_rejection_request(
    request_id: int,
    payload: RejectionDecisionRequest | None = None,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> RejectionDecisionResponse:
    rejection, booking = rejection_service.deny_rejection(
        db=db,
        request_id=request_id,
        admin=current_user,
        admin_notes=payload.admin_notes if payload else None,
    )
    return _decision_response(rejection, booking)
