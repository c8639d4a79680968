"""Logging setup for the podfeed CLI."""
import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FILE_NAME = "podfeed.log"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Libraries that log every request at DEBUG
NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer")


def setup_logging(log_dir: Path, retention_days: int = 30, verbose: bool = False) -> logging.Logger:
    """Attach a rotating file handler and a stderr handler to the podfeed logger.

    The file rolls over at midnight and keeps `retention_days` old files;
    older ones are removed by the handler itself. Console output goes to
    stderr so command output on stdout stays machine readable.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("podfeed")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        when="midnight",
        backupCount=max(retention_days, 1),
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
