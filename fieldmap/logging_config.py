"""Standard library logging setup for runtime entrypoints.

Library modules only create module-level loggers; handlers are installed here,
once, by command-line and bootstrap surfaces.
"""

import logging

LOGGING_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LOGGING_HANDLER_NAME = "fieldmap.stream"


def logging_configure(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the package logger and set its level.

    Repeated calls only update the level.

    Args:
        level: Logging level name.

    Returns:
        logging.Logger: The configured `fieldmap` logger.

    Raises:
        ValueError: Raised when the level name is unknown.
    """

    package_logger = logging.getLogger("fieldmap")
    package_logger.setLevel(level.upper())

    if not any(handler.get_name() == _LOGGING_HANDLER_NAME for handler in package_logger.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.set_name(_LOGGING_HANDLER_NAME)
        stream_handler.setFormatter(logging.Formatter(LOGGING_FORMAT))
        package_logger.addHandler(stream_handler)
    return package_logger
