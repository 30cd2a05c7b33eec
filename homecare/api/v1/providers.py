from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from homecare.api.deps import get_current_provider, get_current_user, require_roles
from homecare.api.pagination import LimitParam, OffsetParam
from homecare.db.models import ProviderProfile, User, UserRole
from homecare.db.session import get_db
from homecare.schemas.catalog import (
    ProviderProfileResponse,
    ProviderServiceAddRequest,
    ProviderServicesSetRequest,
    ServiceChangeResult,
    ServiceResponse,
)
from homecare.services import catalog_service

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", response_model=list[ProviderProfileResponse], status_code=status.HTTP_200_OK)
def list_providers(
    service_id: int | None = None,
    available_only: bool = False,
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[ProviderProfileResponse]:
    providers = catalog_service.list_providers(
        db=db,
        service_id=service_id,
        available_only=available_only,
        limit=limit,
        offset=offset,
    )
    return [ProviderProfileResponse.model_validate(provider) for provider in providers]


@router.get("/me", response_model=ProviderProfileResponse, status_code=status.HTTP_200_OK)
def get_my_profile(profile: ProviderProfile = Depends(get_current_provider)) -> ProviderProfileResponse:
    return ProviderProfileResponse.model_validate(profile)


@router.get("/{provider_id}/services", response_model=list[ServiceResponse], status_code=status.HTTP_200_OK)
def list_provider_services(
    provider_id: int,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ServiceResponse]:
    catalog_service.get_provider_profile(db=db, provider_id=provider_id)
    services = catalog_service.list_provider_services(db=db, provider_id=provider_id)
    return [ServiceResponse.model_validate(service) for service in services]


@router.post("/{provider_id}/services", response_model=list[ServiceResponse], status_code=status.HTTP_200_OK)
def add_provider_service(
    provider_id: int,
    payload: ProviderServiceAddRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[ServiceResponse]:
    services = catalog_service.admin_add_service(db=db, provider_id=provider_id, service_id=payload.service_id)
    return [ServiceResponse.model_validate(service) for service in services]


@router.delete(
    "/{provider_id}/services/{service_id}",
    response_model=list[ServiceResponse],
    status_code=status.HTTP_200_OK,
)
def remove_provider_service(
    provider_id: int,
    service_id: int,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[ServiceResponse]:
    services = catalog_service.admin_remove_service(db=db, provider_id=provider_id, service_id=service_id)
    return [ServiceResponse.model_validate(service) for service in services]


@router.put("/{provider_id}/services", response_model=list[ServiceChangeResult], status_code=status.HTTP_200_OK)
def set_provider_services(
    provider_id: int,
    payload: ProviderServicesSetRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[ServiceChangeResult]:
    return catalog_service.admin_set_services(db=db, provider_id=provider_id, service_ids=payload.service_ids)
