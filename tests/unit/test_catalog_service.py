from decimal import Decimal

import pytest
from fastapi import HTTPException

from homecare.core.exceptions import AlreadyResolved, DuplicatePending, InvalidRequest
from homecare.db.models import Service, ServiceRequestStatus, ServiceRequestType
from homecare.services.catalog_service import (
    admin_add_service,
    admin_remove_service,
    admin_set_services,
    approve_service_request,
    is_qualified,
    list_provider_services,
    reject_service_request,
    set_provider_service,
    submit_service_request,
)


@pytest.fixture()
def catalog(db) -> list[Service]:
    services = [
        Service(name="Home Nursing", price=Decimal("500.00")),
        Service(name="Physiotherapy", price=Decimal("800.00")),
        Service(name="Elder Care", price=Decimal("400.00")),
    ]
    db.add_all(services)
    db.commit()
    return services


def _service_ids(db, provider_id: int) -> set[int]:
    return {service.id for service in list_provider_services(db=db, provider_id=provider_id)}


def test_set_provider_service_is_idempotent(db, make_provider, catalog):
    provider = make_provider()
    nursing = catalog[0]

    assert set_provider_service(db=db, provider_id=provider.id, service_id=nursing.id, present=True) is True
    assert set_provider_service(db=db, provider_id=provider.id, service_id=nursing.id, present=True) is False
    db.commit()
    assert is_qualified(db=db, provider_id=provider.id, service_id=nursing.id)

    assert set_provider_service(db=db, provider_id=provider.id, service_id=nursing.id, present=False) is True
    assert set_provider_service(db=db, provider_id=provider.id, service_id=nursing.id, present=False) is False
    db.commit()
    assert not is_qualified(db=db, provider_id=provider.id, service_id=nursing.id)


def test_admin_set_services_applies_symmetric_difference(db, make_provider, catalog):
    nursing, physio, elder = catalog
    provider = make_provider(nursing, physio)

    results = admin_set_services(db=db, provider_id=provider.id, service_ids=[physio.id, elder.id])

    assert {(result.service_id, result.action, result.ok) for result in results} == {
        (elder.id, "add", True),
        (nursing.id, "remove", True),
    }
    assert _service_ids(db, provider.id) == {physio.id, elder.id}


def test_admin_set_services_twice_yields_same_state(db, make_provider, catalog):
    provider = make_provider()
    target = [catalog[0].id, catalog[2].id]

    admin_set_services(db=db, provider_id=provider.id, service_ids=target)
    after_once = _service_ids(db, provider.id)
    second_results = admin_set_services(db=db, provider_id=provider.id, service_ids=target)

    assert second_results == []
    assert _service_ids(db, provider.id) == after_once == set(target)


def test_admin_set_services_reports_unknown_id_without_undoing_others(db, make_provider, catalog):
    provider = make_provider()

    results = admin_set_services(db=db, provider_id=provider.id, service_ids=[catalog[1].id, 9999])

    by_id = {result.service_id: result for result in results}
    assert by_id[catalog[1].id].ok is True
    assert by_id[9999].ok is False
    assert by_id[9999].error == "Service not found"
    assert _service_ids(db, provider.id) == {catalog[1].id}


def test_admin_direct_add_and_remove(db, make_provider, catalog):
    provider = make_provider()

    added = admin_add_service(db=db, provider_id=provider.id, service_id=catalog[0].id)
    assert [service.id for service in added] == [catalog[0].id]

    removed = admin_remove_service(db=db, provider_id=provider.id, service_id=catalog[0].id)
    assert removed == []


def test_admin_add_unknown_provider_is_not_found(db, catalog):
    with pytest.raises(HTTPException) as exc_info:
        admin_add_service(db=db, provider_id=404, service_id=catalog[0].id)
    assert exc_info.value.status_code == 404


def test_add_request_round_trip_makes_provider_qualified(db, make_provider, admin, catalog):
    provider = make_provider()
    physio = catalog[1]

    service_request = submit_service_request(
        db=db,
        provider_user=provider.user,
        service_id=physio.id,
        request_type=ServiceRequestType.ADD,
        notes="Certified physiotherapist since 2019",
    )
    assert service_request.status == ServiceRequestStatus.PENDING.value

    with pytest.raises(DuplicatePending):
        submit_service_request(
            db=db,
            provider_user=provider.user,
            service_id=physio.id,
            request_type=ServiceRequestType.ADD,
        )

    approved = approve_service_request(db=db, request_id=service_request.id, admin=admin)

    assert approved.status == ServiceRequestStatus.APPROVED.value
    assert approved.reviewed_by_id == admin.id
    assert is_qualified(db=db, provider_id=provider.id, service_id=physio.id)
    assert physio.id in _service_ids(db, provider.id)


def test_remove_request_round_trip_drops_qualification(db, make_provider, admin, catalog):
    physio = catalog[1]
    provider = make_provider(physio)

    service_request = submit_service_request(
        db=db,
        provider_user=provider.user,
        service_id=physio.id,
        request_type=ServiceRequestType.REMOVE,
    )
    approve_service_request(db=db, request_id=service_request.id, admin=admin)

    assert not is_qualified(db=db, provider_id=provider.id, service_id=physio.id)


def test_approving_add_for_already_offered_service_is_harmless(db, make_provider, admin, catalog):
    nursing = catalog[0]
    provider = make_provider(nursing)

    service_request = submit_service_request(
        db=db,
        provider_user=provider.user,
        service_id=nursing.id,
        request_type=ServiceRequestType.ADD,
    )
    approve_service_request(db=db, request_id=service_request.id, admin=admin)

    assert _service_ids(db, provider.id) == {nursing.id}


def test_add_and_remove_requests_for_same_service_can_both_be_pending(db, make_provider, catalog):
    provider = make_provider()
    elder = catalog[2]

    add = submit_service_request(
        db=db,
        provider_user=provider.user,
        service_id=elder.id,
        request_type=ServiceRequestType.ADD,
    )
    remove = submit_service_request(
        db=db,
        provider_user=provider.user,
        service_id=elder.id,
        request_type=ServiceRequestType.REMOVE,
    )

    assert add.id != remove.id


def test_reject_requires_reason_and_leaves_relation(db, make_provider, admin, catalog):
    provider = make_provider()
    elder = catalog[2]
    service_request = submit_service_request(
        db=db,
        provider_user=provider.user,
        service_id=elder.id,
        request_type=ServiceRequestType.ADD,
    )

    with pytest.raises(InvalidRequest):
        reject_service_request(db=db, request_id=service_request.id, admin=admin, reason=" ")

    rejected = reject_service_request(
        db=db,
        request_id=service_request.id,
        admin=admin,
        reason="Missing certification",
    )

    assert rejected.status == ServiceRequestStatus.REJECTED.value
    assert rejected.rejection_reason == "Missing certification"
    assert not is_qualified(db=db, provider_id=provider.id, service_id=elder.id)

    with pytest.raises(AlreadyResolved):
        approve_service_request(db=db, request_id=service_request.id, admin=admin)
