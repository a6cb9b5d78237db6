import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


__version__ = "1.0.0"

PROJECT_ROOT = Path(__file__).resolve().parents[2]
# POS_LEDGER_LOG_DIR relocates the log file, e.g. when installed read-only.
LOG_DIR = Path(os.environ.get("POS_LEDGER_LOG_DIR", PROJECT_ROOT / ".logs")).expanduser()
LOG_FILE = LOG_DIR / "pos_ledger.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _resolve_level(name: str | None, default: int) -> int:
    level = logging.getLevelName((name or "").strip().upper())
    return level if isinstance(level, int) else default


def _configure_logging() -> logging.Logger:
    """Configure the ``pos_ledger`` logger.

    Business events go to a rotating file under ``LOG_DIR``; the console only
    receives warnings and errors so CLI reports on stdout stay readable. The
    file level can be raised or lowered with ``POS_LEDGER_LOG_LEVEL``.
    """

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    file_level = _resolve_level(os.environ.get("POS_LEDGER_LOG_LEVEL"), logging.INFO)
    logger.setLevel(min(file_level, logging.WARNING))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    except OSError as exc:
        print(f"Warning: POS ledger log file disabled ({LOG_FILE}): {exc}", file=sys.stderr)
    else:
        file_handler.setLevel(file_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
log.debug("pos_ledger %s logging to '%s'", __version__, LOG_FILE)
