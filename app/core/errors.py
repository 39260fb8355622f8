"""Error taxonomy for the payment and subscription flow."""

from typing import Optional


class PaymentFlowError(Exception):
    """Base class; `message` is safe to show to the user."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(PaymentFlowError):
    status_code = 401

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class ValidationError(PaymentFlowError):
    """Malformed or missing input; blocks request construction."""

    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ProviderError(PaymentFlowError):
    """Non-2xx or transport failure talking to the payment/subscription backend."""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class IdempotencyConflict(PaymentFlowError):
    """A delivery tried to move a terminal payment to a different status."""

    status_code = 409

    def __init__(self, session_id: str, current: str, incoming: str):
        super().__init__(
            f"Payment session {session_id} is already {current}; ignoring {incoming}"
        )
        self.session_id = session_id
        self.current = current
        self.incoming = incoming


class CheckoutInProgress(PaymentFlowError):
    status_code = 409

    def __init__(self, message: str = "A payment request is already in progress"):
        super().__init__(message)


class ProvisioningPending(PaymentFlowError):
    """Payment not confirmed yet; the caller should poll again."""

    status_code = 202


class PaymentNotCompleted(PaymentFlowError):
    """The session ended without a successful payment."""

    status_code = 409
