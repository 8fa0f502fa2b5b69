"""
notamperdata SDK - Errors

Every failure of the anchoring protocol is an AnchorError. Two flags tell
the caller what it may do next:

  safe_to_retry  - the attempt definitely failed, nothing reached the ledger
                   that could still confirm. A new anchor() call is fine.
  outcome_known  - False when the transaction may still confirm. The caller
                   must reconcile the funding pool before retrying, or it
                   risks anchoring the same record twice.
"""


class AnchorError(Exception):
    """Base class for anchoring failures."""
    safe_to_retry = False
    outcome_known = True


class ConfigurationError(AnchorError):
    """Missing or invalid credentials, network or blueprint."""


class SchemaError(AnchorError, ValueError):
    """Record (or query hash) violates the record schema. Caller bug."""


class DecodeError(AnchorError, ValueError):
    """On-chain metadata could not be read as a record."""


class NoFundsAvailable(AnchorError):
    """No Available funding unit covers lock amount + fee."""
    safe_to_retry = True

    def __init__(self, required: int, available: int = 0):
        self.required = required
        self.available = available
        super().__init__(
            f"No funding unit covers {required} lovelace "
            f"({available} unit(s) available)"
        )


class BuildError(AnchorError):
    """Transaction could not be composed."""
    safe_to_retry = True


class InsufficientValueError(BuildError):
    """Allocated unit is too small for lock amount + fee."""

    def __init__(self, unit_value: int, required: int):
        self.unit_value = unit_value
        self.required = required
        super().__init__(
            f"Funding unit holds {unit_value} lovelace, {required} required"
        )


class SubmissionError(AnchorError):
    """Transient network failure persisted past the retry ceiling."""
    safe_to_retry = True

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class RejectedByLedger(AnchorError):
    """The ledger refused the transaction (e.g. funding unit already spent)."""
    safe_to_retry = True

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


class ConfirmationTimedOut(AnchorError):
    """
    No confirmation observed before the deadline.

    The transaction may still confirm. The funding unit stays Allocated and
    the receipt (without confirmed_at) is attached so the caller can track it.
    """
    outcome_known = False

    def __init__(self, transaction_id: str, timeout: float, receipt=None):
        self.transaction_id = transaction_id
        self.timeout = timeout
        self.receipt = receipt
        super().__init__(
            f"Transaction {transaction_id} not confirmed within {timeout}s"
        )


class ConfirmationUnknown(AnchorError):
    """
    Submitted, but the ledger refused the confirmation query.

    As with a timeout the transaction may still confirm, so the funding unit
    stays Allocated and the receipt is attached. status_code 401/403 means
    the credentials were refused mid-flight.
    """
    outcome_known = False

    def __init__(self, transaction_id: str, message: str, status_code: int = 0,
                 receipt=None):
        self.transaction_id = transaction_id
        self.status_code = status_code
        self.receipt = receipt
        super().__init__(
            f"Confirmation of {transaction_id} could not be checked: {message}"
        )
