import logging

from sqlalchemy.orm import Session

from homecare.core.exceptions import PaymentInitiationFailed
from homecare.db.models import PaymentStatus
from homecare.db.session import SessionLocal
from homecare.services.payment_gateway import PaymentGateway, build_payment_gateway
from homecare.services.payment_service import list_pending_gateway_payments, refresh_payment_status
from homecare.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def reconcile_pending_payments(db: Session, gateway: PaymentGateway) -> dict[str, int]:
    counts = {"checked": 0, "settled": 0, "errors": 0}
    for payment_id in list_pending_gateway_payments(db=db):
        counts["checked"] += 1
        try:
            payment = refresh_payment_status(db=db, payment_id=payment_id, gateway=gateway)
        except PaymentInitiationFailed:
            counts["errors"] += 1
            continue
        if payment.status != PaymentStatus.PENDING.value:
            counts["settled"] += 1
    logger.info(
        "payments_reconciled checked=%s settled=%s errors=%s",
        counts["checked"],
        counts["settled"],
        counts["errors"],
    )
    return counts


@celery_app.task(name="payments.reconcile_pending")
def reconcile_pending_payments_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        return reconcile_pending_payments(db=db, gateway=build_payment_gateway())
    finally:
        db.close()
