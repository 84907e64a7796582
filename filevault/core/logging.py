import logging
import sys

FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("filevault")

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(fmt=FORMAT))

    logger.handlers = [stream_handler]
    logger.setLevel(level.upper())
    return logger
