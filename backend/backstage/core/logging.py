import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from backstage.core.config import Settings

_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(_FIELDS, rename_fields={"levelname": "level", "name": "logger"}))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in ("uvicorn.access", "uvicorn.error", "backstage"):
        logging.getLogger(name).setLevel(level)
