# =============================================================================
# wschat -- Error Types
# =============================================================================


class ChatError(Exception):
    """Base exception for all wschat errors."""


class ChatConnectionError(ChatError):
    """Transport-level failure (could not open, lost mid-stream)."""


class ChatProtocolError(ChatError):
    """Malformed frame: not JSON, wrong shape, or invalid field values."""


class ChatConfigError(ChatError):
    """Invalid client configuration or retry policy."""


class ChatTimeoutError(ChatError):
    """A blocking wait did not complete in time."""
