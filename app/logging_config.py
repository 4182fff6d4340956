import logging
import sys

from app.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None):
    """Route application logs to stdout; gunicorn/uvicorn keep their own handlers."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def append_error_log(message: str):
    with open(settings.ERROR_LOG_PATH, "a") as f:
        f.write(message)
