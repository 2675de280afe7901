class ScholarHubError(Exception):
    """Base for failures that map onto a user-facing `{"error": ...}` response.

    `message` is safe to show to the caller; `detail` is only logged.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, detail: str | None = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(detail or self.message)


class ValidationError(ScholarHubError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(ScholarHubError):
    status_code = 401
    default_message = "Authentication required"


class AccessDenied(ScholarHubError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ScholarHubError):
    status_code = 404
    default_message = "Not found"


class UpstreamFailure(ScholarHubError):
    """A storage backend, OCR engine or email provider call failed."""

    status_code = 500
    default_message = "Upstream service failure"


class InternalError(ScholarHubError):
    status_code = 500
