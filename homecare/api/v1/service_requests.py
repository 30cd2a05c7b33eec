from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from homecare.api.deps import get_current_user, require_roles
from homecare.api.pagination import LimitParam, OffsetParam
from homecare.db.models import ProviderProfile, ServiceRequestStatus, User, UserRole
from homecare.db.session import get_db
from homecare.schemas.catalog import ServiceRequestCreate, ServiceRequestReject, ServiceRequestResponse
from homecare.services import catalog_service

router = APIRouter(prefix="/service-requests", tags=["service-requests"])


@router.post("", response_model=ServiceRequestResponse, status_code=status.HTTP_201_CREATED)
def submit_service_request(
    payload: ServiceRequestCreate,
    current_user: User = Depends(require_roles(UserRole.PROVIDER)),
    db: Session = Depends(get_db),
) -> ServiceRequestResponse:
    service_request = catalog_service.submit_service_request(
        db=db,
        provider_user=current_user,
        service_id=payload.service_id,
        request_type=payload.request_type,
        notes=payload.notes,
    )
    return ServiceRequestResponse.model_validate(service_request)


@router.get("", response_model=list[ServiceRequestResponse], status_code=status.HTTP_200_OK)
def list_service_requests(
    status_filter: ServiceRequestStatus | None = Query(default=None, alias="status"),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ServiceRequestResponse]:
    provider_id = None
    if current_user.role != UserRole.ADMIN.value:
        provider_id = db.scalar(select(ProviderProfile.id).where(ProviderProfile.user_id == current_user.id))
        if provider_id is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
    requests = catalog_service.list_service_requests(
        db=db,
        status_filter=status_filter,
        provider_id=provider_id,
        limit=limit,
        offset=offset,
    )
    return [ServiceRequestResponse.model_validate(service_request) for service_request in requests]


@router.post("/{request_id}/approve", response_model=ServiceRequestResponse, status_code=status.HTTP_200_OK)
def approve_service_request(
    request_id: int,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ServiceRequestResponse:
    service_request = catalog_service.approve_service_request(db=db, request_id=request_id, admin=current_user)
    return ServiceRequestResponse.model_validate(service_request)


@router.post("/{request_id}/reject", response_model=ServiceRequestResponse, status_code=status.HTTP_200_OK)
def reject_service_request(
    request_id: int,
    payload: ServiceRequestReject,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ServiceRequestResponse:
    service_request = catalog_service.reject_service_request(
        db=db,
        request_id=request_id,
        admin=current_user,
        reason=payload.reason,
    )
    return ServiceRequestResponse.model_validate(service_request)
