"""Error taxonomy for the ParkCheck core."""


class ParkCheckError(Exception):
    """Base class for all ParkCheck domain errors."""


class ValidationRejected(ParkCheckError):
    """A submission was malformed or referenced an unknown park.

    Raised before any state is touched; never retried.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RateLimited(ValidationRejected):
    """A reporter exceeded the daily submission quota."""


class UpstreamUnavailable(ParkCheckError):
    """Weather or identity data could not be fetched this cycle."""


class InternalInconsistency(ParkCheckError):
    """A persisted record violates a data-model invariant."""

    def __init__(self, field: str, value):
        super().__init__(f"Invalid persisted value for {field}: {value!r}")
        self.field = field
        self.value = value


class ConcurrentModificationError(ParkCheckError):
    """Optimistic write retries were exhausted for a key."""

    def __init__(self, key: str, attempts: int):
        super().__init__(f"Gave up writing {key} after {attempts} attempts")
        self.key = key
        self.attempts = attempts
