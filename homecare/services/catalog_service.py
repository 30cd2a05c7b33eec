import logging
from datetime import UTC, datetime

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homecare.core.events import event_publisher
from homecare.core.exceptions import AlreadyResolved, DuplicatePending, InvalidRequest
from homecare.db.models import (
    AvailabilityStatus,
    ProviderProfile,
    ProviderService,
    Service,
    ServiceRequest,
    ServiceRequestStatus,
    ServiceRequestType,
    User,
)
from homecare.schemas.catalog import ServiceChangeResult, ServiceCreateRequest

logger = logging.getLogger(__name__)

ACTION_ADD = "add"
ACTION_REMOVE = "remove"


def create_service(db: Session, payload: ServiceCreateRequest) -> Service:
    service = Service(
        name=payload.name,
        category=payload.category,
        description=payload.description,
        price=payload.price,
        duration_hours=payload.duration_hours,
    )
    db.add(service)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Service with this name already exists",
        ) from None
    db.refresh(service)
    return service


def list_services(db: Session, active_only: bool = True, limit: int = 20, offset: int = 0) -> list[Service]:
    query = select(Service)
    if active_only:
        query = query.where(Service.is_active.is_(True))
    return list(db.scalars(query.order_by(Service.id).limit(limit).offset(offset)).all())


def get_service(db: Session, service_id: int) -> Service:
    service = db.scalar(select(Service).where(Service.id == service_id))
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


def get_provider_profile(db: Session, provider_id: int) -> ProviderProfile:
    profile = db.scalar(select(ProviderProfile).where(ProviderProfile.id == provider_id))
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
    return profile


def get_provider_profile_for_user(db: Session, user: User) -> ProviderProfile:
    profile = db.scalar(select(ProviderProfile).where(ProviderProfile.user_id == user.id))
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider profile not found")
    return profile


def list_providers(
    db: Session,
    service_id: int | None = None,
    available_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[ProviderProfile]:
    query = select(ProviderProfile)
    if service_id is not None:
        query = query.join(ProviderService, ProviderService.provider_id == ProviderProfile.id).where(
            ProviderService.service_id == service_id
        )
    if available_only:
        query = query.where(ProviderProfile.availability_status == AvailabilityStatus.AVAILABLE.value)
    return list(db.scalars(query.order_by(ProviderProfile.id).limit(limit).offset(offset)).all())


def is_qualified(db: Session, provider_id: int, service_id: int) -> bool:
    link_id = db.scalar(
        select(ProviderService.id).where(
            ProviderService.provider_id == provider_id,
            ProviderService.service_id == service_id,
        )
    )
    return link_id is not None


def list_provider_services(db: Session, provider_id: int) -> list[Service]:
    return list(
        db.scalars(
            select(Service)
            .join(ProviderService, ProviderService.service_id == Service.id)
            .where(ProviderService.provider_id == provider_id)
            .order_by(Service.id)
        ).all()
    )


def set_provider_service(db: Session, provider_id: int, service_id: int, present: bool) -> bool:
    """Make the (provider, service) relation present or absent.

    Idempotent. Flushes but does not commit; returns True when the relation
    actually changed. A concurrent insert of the same pair surfaces as
    IntegrityError from the flush.
    """
    link = db.scalar(
        select(ProviderService).where(
            ProviderService.provider_id == provider_id,
            ProviderService.service_id == service_id,
        )
    )
    if present:
        if link:
            return False
        db.add(ProviderService(provider_id=provider_id, service_id=service_id))
        db.flush()
        return True

    if not link:
        return False
    db.delete(link)
    db.flush()
    return True


def _apply_change(db: Session, provider_id: int, service_id: int, present: bool) -> ServiceChangeResult:
    action = ACTION_ADD if present else ACTION_REMOVE
    if present and not db.scalar(select(Service.id).where(Service.id == service_id)):
        return ServiceChangeResult(service_id=service_id, action=action, ok=False, error="Service not found")

    try:
        changed = set_provider_service(db=db, provider_id=provider_id, service_id=service_id, present=present)
        db.commit()
    except IntegrityError:
        db.rollback()
        if present and is_qualified(db=db, provider_id=provider_id, service_id=service_id):
            return ServiceChangeResult(service_id=service_id, action=action, ok=True)
        logger.warning("provider_service_change_failed provider_id=%s service_id=%s", provider_id, service_id)
        return ServiceChangeResult(service_id=service_id, action=action, ok=False, error="Conflicting update")

    if changed:
        logger.info(
            "provider_service_changed provider_id=%s service_id=%s action=%s",
            provider_id,
            service_id,
            action,
        )
        event_publisher.publish(
            "provider_service.changed",
            {"provider_id": provider_id, "service_id": service_id, "action": action},
        )
    return ServiceChangeResult(service_id=service_id, action=action, ok=True)


def admin_add_service(db: Session, provider_id: int, service_id: int) -> list[Service]:
    get_provider_profile(db=db, provider_id=provider_id)
    get_service(db=db, service_id=service_id)
    _apply_change(db=db, provider_id=provider_id, service_id=service_id, present=True)
    return list_provider_services(db=db, provider_id=provider_id)


def admin_remove_service(db: Session, provider_id: int, service_id: int) -> list[Service]:
    get_provider_profile(db=db, provider_id=provider_id)
    _apply_change(db=db, provider_id=provider_id, service_id=service_id, present=False)
    return list_provider_services(db=db, provider_id=provider_id)


def admin_set_services(db: Session, provider_id: int, service_ids: list[int]) -> list[ServiceChangeResult]:
    """Bring the provider's service set to exactly ``service_ids``.

    Each addition or removal commits on its own, so one failing id does not
    undo the others.
    """
    get_provider_profile(db=db, provider_id=provider_id)
    current = {service.id for service in list_provider_services(db=db, provider_id=provider_id)}
    target = set(service_ids)

    results = [
        _apply_change(db=db, provider_id=provider_id, service_id=service_id, present=True)
        for service_id in sorted(target - current)
    ]
    results.extend(
        _apply_change(db=db, provider_id=provider_id, service_id=service_id, present=False)
        for service_id in sorted(current - target)
    )
    return results


def submit_service_request(
    db: Session,
    provider_user: User,
    service_id: int,
    request_type: ServiceRequestType,
    notes: str | None = None,
) -> ServiceRequest:
    profile = get_provider_profile_for_user(db=db, user=provider_user)
    get_service(db=db, service_id=service_id)

    pending = db.scalar(
        select(ServiceRequest.id).where(
            ServiceRequest.provider_id == profile.id,
            ServiceRequest.service_id == service_id,
            ServiceRequest.request_type == request_type.value,
            ServiceRequest.status == ServiceRequestStatus.PENDING.value,
        )
    )
    if pending:
        raise DuplicatePending(
            "A pending request already exists for this service",
            detail={"service_request_id": pending},
        )

    service_request = ServiceRequest(
        provider_id=profile.id,
        service_id=service_id,
        request_type=request_type.value,
        notes=notes,
        status=ServiceRequestStatus.PENDING.value,
    )
    db.add(service_request)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePending("A pending request already exists for this service") from None
    db.refresh(service_request)

    logger.info(
        "service_request_submitted request_id=%s provider_id=%s service_id=%s type=%s",
        service_request.id,
        profile.id,
        service_id,
        request_type.value,
    )
    event_publisher.publish(
        "service_request.submitted",
        {"service_request_id": service_request.id, "provider_id": profile.id, "service_id": service_id},
    )
    return service_request


def _get_service_request(db: Session, request_id: int) -> ServiceRequest:
    service_request = db.scalar(select(ServiceRequest).where(ServiceRequest.id == request_id))
    if not service_request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service request not found")
    return service_request


def _resolve_service_request(db: Session, request_id: int, **values) -> None:
    updated = db.execute(
        update(ServiceRequest)
        .where(
            ServiceRequest.id == request_id,
            ServiceRequest.status == ServiceRequestStatus.PENDING.value,
        )
        .values(**values)
    )
    if updated.rowcount != 1:
        db.rollback()
        current_status = db.scalar(select(ServiceRequest.status).where(ServiceRequest.id == request_id))
        raise AlreadyResolved(
            "Service request already resolved",
            detail={"service_request_id": request_id, "status": current_status},
        )


def approve_service_request(db: Session, request_id: int, admin: User) -> ServiceRequest:
    service_request = _get_service_request(db=db, request_id=request_id)
    provider_id = service_request.provider_id
    service_id = service_request.service_id
    present = service_request.request_type == ServiceRequestType.ADD.value
    decision = {
        "status": ServiceRequestStatus.APPROVED.value,
        "reviewed_by_id": admin.id,
        "reviewed_at": datetime.now(UTC),
    }

    _resolve_service_request(db=db, request_id=request_id, **decision)
    try:
        set_provider_service(db=db, provider_id=provider_id, service_id=service_id, present=present)
        db.commit()
    except IntegrityError:
        # the pair was inserted concurrently; the relation is already in the approved state
        db.rollback()
        _resolve_service_request(db=db, request_id=request_id, **decision)
        db.commit()
    db.refresh(service_request)

    logger.info(
        "service_request_approved request_id=%s provider_id=%s service_id=%s admin_id=%s",
        request_id,
        provider_id,
        service_id,
        admin.id,
    )
    event_publisher.publish(
        "service_request.approved",
        {"service_request_id": request_id, "provider_id": provider_id, "service_id": service_id},
    )
    return service_request


def reject_service_request(db: Session, request_id: int, admin: User, reason: str) -> ServiceRequest:
    if not reason or not reason.strip():
        raise InvalidRequest("Rejection reason is required")

    service_request = _get_service_request(db=db, request_id=request_id)
    _resolve_service_request(
        db=db,
        request_id=request_id,
        status=ServiceRequestStatus.REJECTED.value,
        rejection_reason=reason.strip(),
        reviewed_by_id=admin.id,
        reviewed_at=datetime.now(UTC),
    )
    db.commit()
    db.refresh(service_request)

    logger.info("service_request_rejected request_id=%s admin_id=%s", request_id, admin.id)
    event_publisher.publish(
        "service_request.rejected",
        {"service_request_id": request_id, "provider_id": service_request.provider_id},
    )
    return service_request


def list_service_requests(
    db: Session,
    status_filter: ServiceRequestStatus | None = None,
    provider_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[ServiceRequest]:
    query = select(ServiceRequest)
    if status_filter:
        query = query.where(ServiceRequest.status == status_filter.value)
    if provider_id is not None:
        query = query.where(ServiceRequest.provider_id == provider_id)
    return list(
        db.scalars(
            query.order_by(ServiceRequest.requested_at, ServiceRequest.id).limit(limit).offset(offset)
        ).all()
    )
