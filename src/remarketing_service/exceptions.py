"""Error taxonomy for the remarketing service."""


class RemarketingError(Exception):
    """Base class for all service errors."""


class ValidationError(RemarketingError):
    """A required ingestion field is missing or malformed."""


class PersistenceError(RemarketingError):
    """The store is unavailable or rejected a write."""


class ConfigurationError(RemarketingError):
    """A selected collaborator is missing its credentials."""


class CollaboratorError(RemarketingError):
    """An external collaborator failed, timed out or returned garbage."""

    collaborator = "unknown"


class GenerationError(CollaboratorError):
    collaborator = "generation"


class DiscountError(CollaboratorError):
    collaborator = "discount"


class DeliveryError(CollaboratorError):
    collaborator = "delivery"
