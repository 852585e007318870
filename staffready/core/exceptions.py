"""
Domain exceptions raised by the StaffReady services.

Every exception derives from ``ChecklistError`` which is itself a
``ValueError``, so callers that only care about "the request was refused"
can keep catching ``ValueError``.  The HTTP layer maps each subclass to a
status code in ``staffready.api.routes._errors``.
"""


class ChecklistError(ValueError):
    """Base class for all service-layer refusals."""


class NotFoundError(ChecklistError):
    """Entity does not exist or belongs to another organization."""


class InvalidStateError(ChecklistError):
    """Operation is not permitted from the entity's current state."""


class ForbiddenError(ChecklistError):
    """The acting role may not perform this operation."""


class PolicyViolationError(ChecklistError):
    """A business safety rule refuses the operation."""


class MissingValueError(ChecklistError):
    """A required field for this item type was not supplied."""
