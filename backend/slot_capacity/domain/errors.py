class DomainError(Exception):
    """Base class for errors raised by the scheduling engine."""


class ValidationError(DomainError):
    """Malformed slot definition or booking target. Raised before any mutation."""


class NotFoundError(DomainError):
    pass


class ConflictError(DomainError):
    """The write would break an invariant held by existing data (bookings, dependents)."""


class SlotNotOpenError(ConflictError):
    pass


class CapacityExceededError(DomainError):
    """No room left at the granularity being booked. An expected outcome, not a fault."""


class MaterializationError(DomainError):
    """Index regeneration aborted; the previous index rows are left in place."""


class ForbiddenError(DomainError):
    """Caller does not own the opportunity being changed."""
