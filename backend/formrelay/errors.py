"""
Error types raised by the notification pipeline.

Only InvalidRecipient and ConfigurationError ever reach the caller.
RenderError and TransportError are caught inside the dispatcher and
recorded as data on the NotificationResult.
"""


class FormRelayError(Exception):
    """Base class for all formrelay errors."""


class InvalidRecipient(FormRelayError):
    """The customer's email address is not syntactically valid."""

    def __init__(self, address: str, reason: str = ""):
        self.address = address
        self.reason = reason
        message = f"Invalid recipient address {address!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class RenderError(FormRelayError):
    """The render engine failed, timed out or produced no output."""


class TransportError(FormRelayError):
    """A single message could not be handed to the mail server."""


class ConfigurationError(FormRelayError):
    """Startup configuration is unusable (not even a simulated transport can be built)."""
