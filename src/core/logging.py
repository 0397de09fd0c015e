import sys
from typing import Optional
from loguru import logger
import os

NO_SOURCE = "-"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[source]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def _from_storage_source(record) -> bool:
    return record["extra"].get("source", NO_SOURCE) != NO_SOURCE


def setup_logging(debug_mode: bool = True, log_dir: Optional[str] = "logs"):
    """
    Configures Loguru logger.

    Records logged through ``logger.bind(source=<storage source>)`` carry
    the source name in every sink. With ``log_dir`` set, a rotating DEBUG
    file receives everything and ``replication.log`` receives only the
    per-source records.
    """
    # Remove default handler
    logger.remove()
    logger.configure(extra={"source": NO_SOURCE})

    # Console Handler
    level = "DEBUG" if debug_mode else "INFO"
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    # File Handlers
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logger.add(os.path.join(log_dir, "bookfs_{time}.log"), rotation="10 MB", retention="1 week", level="DEBUG")
        logger.add(
            os.path.join(log_dir, "replication.log"),
            rotation="10 MB",
            retention=5,
            level="INFO",
            filter=_from_storage_source,
        )

    logger.info("Logging initialized.")
