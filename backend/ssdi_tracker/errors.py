"""Domain exceptions raised by services and translated by the HTTP layer."""


class StoreUnavailable(RuntimeError):
    """Reading from or writing to the database failed."""


class NotFoundOrForbidden(LookupError):
    """The target row does not exist or belongs to another user.

    Both cases share one error so callers cannot probe for other users' ids.
    """


class ValidationFailure(ValueError):
    """A write payload or upload was rejected."""


class IntegrationError(RuntimeError):
    """The connected Google account is missing or its API call failed."""


class UnsupportedUpload(ValidationFailure):
    """The uploaded file is not a PDF, Word document or JPEG/PNG image."""
