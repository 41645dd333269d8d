"""
Logging setup for command-line use.

Library modules only create module-level loggers; handlers are installed
here, by the CLI, never on import.
"""

import logging
from typing import Optional

from tabquery.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a stream handler on the root logger at ``level``."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        force=True,
    )
