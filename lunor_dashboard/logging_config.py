import logging
import sys

NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "uvicorn.access")


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    logger = logging.getLogger("lunor")
    if logger.handlers:
        return logger  # already configured
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    # request/driver chatter stays quiet unless the dashboard itself is debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
    return logger
