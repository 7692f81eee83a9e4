"""Custom exceptions for chatrelay."""


class ChatRelayError(Exception):
    """Base class for relay errors."""


class BackendError(ChatRelayError):
    """A backend call failed before any chunk could be produced."""


class RequestConstructionError(BackendError):
    """Raised when the outbound backend request cannot be built."""


class TransportError(BackendError):
    """Raised when the backend cannot be reached or never responds."""


class BackendStatusError(TransportError):
    """Raised when the backend answers with a non-success status."""

    def __init__(self, status_code: int, *, url: str | None = None) -> None:
        """Initialize the error with the offending status code."""
        self.status_code = status_code
        self.url = url
        target = f" from {url}" if url else ""
        super().__init__(f"Backend returned HTTP {status_code}{target}")


class DecodeError(ChatRelayError):
    """Raised for a malformed frame or body; the affected unit is skipped."""


class DeliveryError(ChatRelayError):
    """Raised when a chat-platform call fails."""


class PlaceholderError(ChatRelayError):
    """Raised when the initial placeholder message cannot be posted."""
