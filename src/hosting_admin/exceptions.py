"""Error taxonomy shared by the auth and billing flows."""


class BackofficeError(Exception):
    """Base exception for hosting_admin.

    ``public_message`` is what callers see; it never reveals whether an
    email or billing record exists.  Only validation errors expose their
    own message.
    """

    status_code = 500
    public_message = "Request failed"
    expose_message = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class ValidationError(BackofficeError):
    """Malformed input the caller can fix."""

    status_code = 400
    public_message = "Invalid request"
    expose_message = True


class Unauthorized(BackofficeError):
    """Email not allow-listed, or credential invalid or absent."""

    status_code = 403
    public_message = "This email is not authorized to access the admin panel."


class InvalidOrExpiredCode(BackofficeError):
    """Submitted OTP did not match an unexpired code."""

    status_code = 401
    public_message = "Invalid or expired verification code"


class DeliveryError(BackofficeError):
    """The mail transport failed to accept a message."""

    status_code = 502
    public_message = "Failed to send verification code"


class SignatureError(BackofficeError):
    """Webhook authenticity check failed."""

    status_code = 400
    public_message = "Webhook signature verification failed"


class NotFound(BackofficeError):
    """Referenced billing entity is absent."""

    status_code = 404
    public_message = "Not found"


class BillingProviderError(BackofficeError):
    """The payment provider API returned an error."""

    status_code = 502
    public_message = "Billing provider request failed"
