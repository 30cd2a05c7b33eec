from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from homecare.api.deps import get_current_user, require_roles
from homecare.api.pagination import LimitParam, OffsetParam
from homecare.db.models import BookingStatus, ProviderProfile, User, UserRole
from homecare.db.session import get_db
from homecare.schemas.booking import AssignProviderRequest, BookingCreateRequest, BookingResponse
from homecare.services import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreateRequest,
    current_user: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.create_booking(db=db, customer=current_user, payload=payload)
    return BookingResponse.model_validate(booking)


@router.get("", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
def list_bookings(
    unassigned: bool = Query(default=False),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BookingResponse]:
    if unassigned:
        if current_user.role != UserRole.ADMIN.value:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
        bookings = booking_service.list_unassigned_work(db=db, limit=limit, offset=offset)
    elif current_user.role == UserRole.ADMIN.value:
        bookings = booking_service.list_all_bookings(db=db, status_filter=status_filter, limit=limit, offset=offset)
    elif current_user.role == UserRole.PROVIDER.value:
        provider_id = db.scalar(select(ProviderProfile.id).where(ProviderProfile.user_id == current_user.id))
        if provider_id is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider profile not found")
        bookings = booking_service.list_provider_bookings(
            db=db,
            provider_id=provider_id,
            status_filter=status_filter,
            limit=limit,
            offset=offset,
        )
    else:
        bookings = booking_service.list_customer_bookings(
            db=db,
            customer_id=current_user.id,
            status_filter=status_filter,
            limit=limit,
            offset=offset,
        )
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.get("/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.get_booking_for_actor(db=db, booking_id=booking_id, actor=current_user)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/assign-provider", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def assign_provider(
    booking_id: int,
    payload: AssignProviderRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.assign_provider(db=db, booking_id=booking_id, provider_id=payload.provider_id)
    return BookingResponse.model_validate(booking)


@router.put("/{booking_id}/cancel", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def cancel_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.cancel_booking(db=db, booking_id=booking_id, actor=current_user)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/start", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def start_booking(
    booking_id: int,
    current_user: User = Depends(require_roles(UserRole.PROVIDER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.start_booking(db=db, booking_id=booking_id, actor=current_user)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def complete_booking(
    booking_id: int,
    current_user: User = Depends(require_roles(UserRole.PROVIDER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.complete_booking(db=db, booking_id=booking_id, actor=current_user)
    return BookingResponse.model_validate(booking)
