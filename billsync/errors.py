import enum


class ErrorKind(str, enum.Enum):
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED_EVENT = "malformed_event"
    CONFIGURATION_MISSING = "configuration_missing"
    NOT_FOUND = "not_found"
    NO_ACTIVE_SUBSCRIPTION = "no_active_subscription"
    # Logged only; never raised to the transport
    RECONCILIATION_GAP = "reconciliation_gap"


_HTTP_STATUS = {
    ErrorKind.PROVIDER_UNAVAILABLE: 503,
    ErrorKind.INVALID_SIGNATURE: 400,
    ErrorKind.MALFORMED_EVENT: 400,
    ErrorKind.CONFIGURATION_MISSING: 500,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NO_ACTIVE_SUBSCRIPTION: 404,
}


class BillingError(Exception):
    """Caller-facing billing failure tagged with an ErrorKind."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.kind, 500)

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        return f"<BillingError kind={self.kind.value} message={self.message!r}>"
