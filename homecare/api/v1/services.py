from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from homecare.api.deps import require_roles
from homecare.api.pagination import LimitParam, OffsetParam
from homecare.db.models import User, UserRole
from homecare.db.session import get_db
from homecare.schemas.catalog import ServiceCreateRequest, ServiceResponse
from homecare.services import catalog_service

router = APIRouter(prefix="/services", tags=["services"])


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    payload: ServiceCreateRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ServiceResponse:
    service = catalog_service.create_service(db=db, payload=payload)
    return ServiceResponse.model_validate(service)


@router.get("", response_model=list[ServiceResponse], status_code=status.HTTP_200_OK)
def list_services(
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[ServiceResponse]:
    services = catalog_service.list_services(db=db, limit=limit, offset=offset)
    return [ServiceResponse.model_validate(service) for service in services]
