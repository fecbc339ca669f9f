# storefront/domain/errors.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from storefront.domain.result import Err


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    EMPTY_CART = "EmptyCart"
    ADDRESS_INVALID = "AddressInvalid"
    INSUFFICIENT_STOCK = "InsufficientStock"
    NOT_FOUND = "NotFound"
    INVALID_TRANSITION = "InvalidTransition"
    ORDER_NOT_PAYABLE = "OrderNotPayable"
    SIGNATURE_MISMATCH = "SignatureMismatch"
    SIGNATURE_INVALID = "SignatureInvalid"
    INVALID_PAYLOAD = "InvalidPayload"
    PAYMENT_RECORD_NOT_FOUND = "PaymentRecordNotFound"
    GATEWAY_ERROR = "GatewayError"
    TRANSACTION_FAILURE = "TransactionFailure"


_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.GATEWAY_ERROR: 502,
    ErrorKind.TRANSACTION_FAILURE: 500,
}


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self.kind, 400)

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, **self.details}


def fail(kind: ErrorKind, message: str, **details: Any) -> Err[ServiceError]:
    return Err(ServiceError(kind=kind, message=message, details=details))


class GatewayError(Exception):
    """Wywolanie bramki platnosci nie powiodlo sie albo bramka nie jest skonfigurowana."""
