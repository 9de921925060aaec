import logging

_LOG_FORMAT = "[reloadable-config] %(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level="INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger; safe to call repeatedly."""
    logger = logging.getLogger("reloadable_config")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)
    return logger
