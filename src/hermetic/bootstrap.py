"""Bootstrap - prepare the process for sandboxed work.

Sets up logging and makes sure the configured temp root exists. Safe to call
multiple times (idempotent).
"""

import structlog

from hermetic.config import settings

logger = structlog.get_logger()


def bootstrap():
    """Initialize logging and the ephemeral directory root."""
    settings.setup_logging()
    settings.ensure_directories()
    logger.info(
        "hermetic_bootstrapped",
        temp_root=str(settings.temp_directory_provider().root),
        preserved_env=settings.preserved_env,
    )
