import logging


PACKAGE_LOGGER = "knn_classifier"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Configure logging for the knn_classifier package.

    Every module logs through ``logging.getLogger(__name__)``, so configuring
    the package logger covers all of them.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured package logger
    """
    level = getattr(logging, log_level.upper())

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger
