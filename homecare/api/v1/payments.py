from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from homecare.api.deps import get_current_user, get_payment_gateway, require_roles
from homecare.db.models import User, UserRole
from homecare.db.session import get_db
from homecare.schemas.payment import PaymentInitiateRequest, PaymentIntent, PaymentResponse
from homecare.services import payment_service
from homecare.services.payment_gateway import PaymentGateway

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initiate", response_model=PaymentIntent, status_code=status.HTTP_200_OK)
def initiate_payment(
    payload: PaymentInitiateRequest,
    current_user: User = Depends(require_roles(UserRole.CUSTOMER, UserRole.ADMIN)),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: Session = Depends(get_db),
) -> PaymentIntent:
    return payment_service.initiate_payment(
        db=db,
        booking_id=payload.booking_id,
        customer=current_user,
        method=payload.method,
        timing=payload.timing,
        gateway=gateway,
        amount=payload.amount,
    )


@router.get("/{payment_id}", response_model=PaymentResponse, status_code=status.HTTP_200_OK)
def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment = payment_service.get_payment_for_actor(db=db, payment_id=payment_id, actor=current_user)
    return PaymentResponse.model_validate(payment)


@router.post("/{payment_id}/refresh", response_model=PaymentResponse, status_code=status.HTTP_200_OK)
def refresh_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment_service.get_payment_for_actor(db=db, payment_id=payment_id, actor=current_user)
    payment = payment_service.refresh_payment_status(db=db, payment_id=payment_id, gateway=gateway)
    return PaymentResponse.model_validate(payment)


@router.post("/{payment_id}/confirm-cash", response_model=PaymentResponse, status_code=status.HTTP_200_OK)
def confirm_cash_payment(
    payment_id: int,
    current_user: User = Depends(require_roles(UserRole.PROVIDER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment = payment_service.confirm_cash_payment(db=db, payment_id=payment_id, actor=current_user)
    return PaymentResponse.model_validate(payment)
