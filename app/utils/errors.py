"""Error taxonomy for the screening subsystem.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer should answer with. Idempotent outcomes (already passed, already in
progress, already consented) are success payloads, not errors.
"""


class ScreeningError(Exception):
    """Base class for screening errors."""

    code = 'INTERNAL_ERROR'
    status_code = 500

    def __init__(self, message: str = None, details: dict = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(ScreeningError):
    code = 'VALIDATION_ERROR'
    status_code = 400


class ConsentRequiredError(ScreeningError):
    """Raised when FCRA consent has not been recorded for the applicant."""

    code = 'CONSENT_REQUIRED'
    status_code = 400


class PrerequisiteFailedError(ScreeningError):
    """Raised when identity verification has not passed yet."""

    code = 'PREREQUISITE_FAILED'
    status_code = 400


class SignatureInvalidError(ScreeningError):
    code = 'SIGNATURE_INVALID'
    status_code = 403


class ForbiddenError(ScreeningError):
    code = 'FORBIDDEN'
    status_code = 403


class NotFoundError(ScreeningError):
    code = 'NOT_FOUND'
    status_code = 404


class ProviderError(ScreeningError):
    """Raised for any failure talking to an external verification provider.

    Attributes:
        provider: Name of the provider that failed ("idenfy", "checkr")
        upstream_status: HTTP status returned by the provider, if any
    """

    code = 'PROVIDER_ERROR'
    status_code = 502

    def __init__(self, message: str, provider: str, upstream_status: int = None):
        super().__init__(message, details={'provider': provider})
        self.provider = provider
        self.upstream_status = upstream_status
