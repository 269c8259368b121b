class WorkflowError(Exception):
    """Base for errors raised by the claim and verification workflows.

    Each subclass maps to one HTTP status; the API renders them as
    ``{"error": message}``.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(WorkflowError):
    status_code = 404


class InvalidStateError(WorkflowError):
    status_code = 400


class ForbiddenError(WorkflowError):
    status_code = 403


class ConflictError(WorkflowError):
    status_code = 409


class ValidationError(WorkflowError):
    status_code = 400


class DependencyFailure(WorkflowError):
    """An external service (object storage) failed while serving the request."""

    status_code = 500
