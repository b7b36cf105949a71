"""TabSnap: recently-used tab switcher with cached thumbnail snapshots."""

import logging
import os
import sys
from datetime import datetime

LOG_FORMAT = "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"


def default_log_path(component="tabsnap"):
    """Dated log file under ``logs/`` (or ``$TABSNAP_LOG_DIR``), one per component."""
    log_dir = os.environ.get("TABSNAP_LOG_DIR") or os.path.join(
        os.path.dirname(os.path.abspath(__file__)), "..", "logs"
    )
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, f"{component}_{datetime.now():%Y%m%d}.log")


def setup_logging(log_file=None, level=logging.INFO, component="tabsnap"):
    """Configure file and stdout logging for a TabSnap process.

    Args:
        log_file (str, optional): Path to log file. If None, uses default_log_path().
        level (int, optional): Root logging level.
        component (str, optional): Process name used in the default file name.

    Returns:
        logging.Logger: The ``TabSnap`` root logger.
    """
    log_file = log_file or default_log_path(component)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(log_file), logging.StreamHandler(sys.stdout)],
    )
    # Every extension poll is a request; keep werkzeug's access log out of INFO
    logging.getLogger("werkzeug").setLevel(max(level, logging.WARNING))

    logger = logging.getLogger("TabSnap")
    logger.info(f"Logging to {log_file} ({component})")
    return logger


__version__ = "0.3.0"
