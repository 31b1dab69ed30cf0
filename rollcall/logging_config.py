import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

_HANDLER_FLAG = "_rollcall_handler"


def configure_logging(level="INFO", log_file=None):
    """Attach stdout (and optionally file) handlers to the ``rollcall`` logger.

    Safe to call repeatedly: handlers installed by an earlier call are replaced.
    """
    logger = logging.getLogger("rollcall")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    setattr(stream_handler, _HANDLER_FLAG, True)
    logger.addHandler(stream_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not open log file %s: %s", log_file, exc)
        else:
            file_handler.setFormatter(formatter)
            setattr(file_handler, _HANDLER_FLAG, True)
            logger.addHandler(file_handler)

    return logger
