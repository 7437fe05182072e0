import logging
from typing import Literal

LOG_FORMAT_DEBUG = (
    "[%(levelname)7s]: %(name)s - %(message)s --- %(pathname)s:%(lineno)d"
)
LOG_FORMAT_PROD = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_NOISY_LOGGERS = ("httpx", "sqlalchemy.engine", "aiosqlite")


def setup_logging(env: Literal["local", "dev", "prod"]) -> None:
    """Configure root logging for the given environment.

    Local and dev runs log at DEBUG with the source location, so sentinel
    substitutions in the signal collector are visible; prod logs at INFO.
    """
    if env in ("local", "dev"):
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT_DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT_PROD)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
