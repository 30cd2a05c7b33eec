import logging
import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from uuid import uuid4

import httpx
from pydantic import BaseModel, ValidationError

from homecare.core.config import settings

logger = logging.getLogger(__name__)


class GatewayOutcome(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"


class GatewayResult(BaseModel):
    outcome: GatewayOutcome
    transaction_id: str | None = None
    redirect_url: str | None = None
    message: str | None = None


class PaymentGatewayError(Exception):
    """The gateway could not be reached or answered with garbage."""


class PaymentGateway(ABC):
    @abstractmethod
    def initiate(self, order_id: str, amount: Decimal, currency: str, customer_email: str) -> GatewayResult:
        raise NotImplementedError

    @abstractmethod
    def check_status(self, transaction_id: str) -> GatewayResult:
        raise NotImplementedError


class DummyPaymentGateway(PaymentGateway):
    """In-process gateway for development and tests.

    Every initiation answers with the configured outcome; ``settle`` lets a
    caller move a pending transaction to its final outcome.
    """

    def __init__(self, outcome: GatewayOutcome | str = GatewayOutcome.SUCCESS) -> None:
        self.outcome = GatewayOutcome(outcome)
        self.calls: list[str] = []
        self._transactions: dict[str, GatewayOutcome] = {}
        self._lock = threading.Lock()

    def initiate(self, order_id: str, amount: Decimal, currency: str, customer_email: str) -> GatewayResult:
        with self._lock:
            self.calls.append(order_id)
            if self.outcome == GatewayOutcome.FAILED:
                return GatewayResult(outcome=GatewayOutcome.FAILED, message="Payment declined")
            transaction_id = f"dummy_{uuid4().hex}"
            self._transactions[transaction_id] = self.outcome

        redirect_url = None
        if self.outcome == GatewayOutcome.PENDING:
            redirect_url = f"https://payments.invalid/checkout/{transaction_id}"
        return GatewayResult(outcome=self.outcome, transaction_id=transaction_id, redirect_url=redirect_url)

    def check_status(self, transaction_id: str) -> GatewayResult:
        with self._lock:
            outcome = self._transactions.get(transaction_id)
        if outcome is None:
            raise PaymentGatewayError(f"Unknown transaction {transaction_id}")
        return GatewayResult(outcome=outcome, transaction_id=transaction_id)

    def settle(self, transaction_id: str, outcome: GatewayOutcome | str) -> None:
        with self._lock:
            self._transactions[transaction_id] = GatewayOutcome(outcome)


class HttpPaymentGateway(PaymentGateway):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Authorization": f"Bearer {api_key}", "Accept": "application/json"},
        )

    def _request(self, method: str, path: str, **kwargs) -> GatewayResult:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return GatewayResult.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.warning("payment_gateway_http_error method=%s path=%s error=%s", method, path, exc)
            raise PaymentGatewayError(str(exc)) from exc
        except (ValueError, ValidationError) as exc:
            logger.warning("payment_gateway_bad_response method=%s path=%s", method, path)
            raise PaymentGatewayError("Malformed gateway response") from exc

    def initiate(self, order_id: str, amount: Decimal, currency: str, customer_email: str) -> GatewayResult:
        return self._request(
            "POST",
            "/payments",
            json={
                "order_id": order_id,
                "amount": str(amount),
                "currency": currency,
                "customer_email": customer_email,
            },
        )

    def check_status(self, transaction_id: str) -> GatewayResult:
        return self._request("GET", f"/payments/{transaction_id}")

    def close(self) -> None:
        self._client.close()


def build_payment_gateway() -> PaymentGateway:
    backend = settings.payment_gateway_backend.strip().lower()
    if backend == "http":
        return HttpPaymentGateway(
            base_url=settings.payment_gateway_url,
            api_key=settings.payment_gateway_api_key,
            timeout=settings.payment_gateway_timeout_seconds,
        )
    return DummyPaymentGateway(outcome=settings.payment_dummy_outcome)
