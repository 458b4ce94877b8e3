# =============================================================================
# wschat -- Package Logger
# =============================================================================

import logging

logger = logging.getLogger("wschat")
logger.addHandler(logging.NullHandler())
