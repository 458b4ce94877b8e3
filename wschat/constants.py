# =============================================================================
# wschat -- Protocol Constants
# =============================================================================

DEFAULT_URL = "ws://localhost:3001/ws"

# -- Timing (seconds) --------------------------------------------------------

CONNECTION_TIMEOUT = 10.0

# -- Reconnection -------------------------------------------------------------

RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 10.0
RETRY_MAX_ATTEMPTS = 5

# -- Limits --------------------------------------------------------------------

MAX_IDENTITY_LENGTH = 30
MAX_MESSAGE_LENGTH = 1000
MAX_FRAME_SIZE = 65_536  # bytes

# -- WebSocket close codes -----------------------------------------------------

WS_CLOSE_ABNORMAL = 1006
