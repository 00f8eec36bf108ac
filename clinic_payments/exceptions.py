"""
Domain errors for payment reconciliation.

Every error carries the HTTP status the API layer answers with.
They all derive from ValueError, so callers that only care about
"bad input or bad state" can keep catching ValueError.
"""


class PaymentError(ValueError):
    """Base class for all errors raised by the services."""

    status_code: int = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        # Correlation key, beneficiary id, etc. Logged for manual follow-up.
        self.context = context


# --- 400 ---

class ValidationError(PaymentError):
    status_code = 400


class MissingCorrelationKey(ValidationError):
    pass


class PurchaseAlreadySettled(ValidationError):
    pass


class LedgerExists(ValidationError):
    pass


class InvalidImage(ValidationError):
    pass


# --- 404 ---

class NotFoundError(PaymentError):
    status_code = 404


class PurchaseNotFound(NotFoundError):
    pass


# --- 500 ---

class UpstreamUnavailable(PaymentError):
    status_code = 500


class GatewayUnavailable(UpstreamUnavailable):
    pass


class InternalInconsistency(PaymentError):
    status_code = 500


# --- Recorded failures ---
# Raised after the notification was already written to the purchase
# and the audit log. The API commits those writes before reporting
# the error, so the purchase reflects what the gateway said even
# when it could not be fully applied.

class RecordedError(PaymentError):
    pass


class UnknownOutcome(RecordedError, ValidationError):
    pass


class CreditError(RecordedError):
    pass


class IncompleteLedgerTarget(CreditError, InternalInconsistency):
    pass


class LedgerTargetNotFound(CreditError, NotFoundError):
    pass
