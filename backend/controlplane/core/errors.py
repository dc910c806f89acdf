class PresignError(Exception):
    """Base class for failures raised while issuing a presigned URL."""


class ConfigurationMissing(PresignError):
    """Signing secret or node endpoint is not configured."""


class InvalidInput(PresignError):
    """Caller supplied a value the signer refuses to sign."""


class SigningFailure(PresignError):
    """Opaque wrapper for unexpected errors during signing or assembly."""


class SigningError(Exception):
    """Raised by the HMAC signer itself."""
