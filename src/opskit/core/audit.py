"""
Append-only audit logs, one file per tool.

Each line reads ``[YYYY-MM-DD HH:MM:SS] [LEVEL] message``.
"""

import logging
import os
from pathlib import Path

AUDIT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
AUDIT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_audit_logger(tool: str, log_file: Path) -> logging.Logger:
    """
    Return the audit logger for ``tool``, attached to ``log_file``.

    Calling again with a different path moves the logger to the new file,
    which keeps tests that point ``log_dir`` at a temp directory isolated.
    """
    logger = logging.getLogger(f"opskit.audit.{tool}")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    target = os.path.abspath(log_file)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return logger
        logger.removeHandler(handler)
        handler.close()

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(AUDIT_FORMAT, datefmt=AUDIT_DATEFMT))
    logger.addHandler(handler)
    return logger
