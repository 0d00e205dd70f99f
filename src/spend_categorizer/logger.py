import logging
import logging.config
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FILENAME = "spend-categorizer.log"

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class ColourizedFormatter(logging.Formatter):
    """Colours the level name on terminal output.

    Set ``NO_COLOR`` to get plain output from the same formatter.
    """
    LEVEL_COLOURS = {
        logging.DEBUG: "\x1b[90m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, use_colours: bool | None = None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colours = "NO_COLOR" not in os.environ if use_colours is None else use_colours

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelno)
        if not self.use_colours or colour is None:
            return super().format(record)
        # Work on a copy; the file handler sees the same record
        tinted = logging.makeLogRecord(record.__dict__)
        tinted.levelname = f"{colour}{record.levelname}{self.RESET}"
        return super().format(tinted)


def get_logging_config() -> dict:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR")

    handlers: dict[str, dict] = {
        "stdout": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "coloured",
        },
    }
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["logfile"] = {
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, LOG_FILENAME),
            "encoding": "utf-8",
            "formatter": "plain",
        }
    names = list(handlers)

    loggers: dict[str, dict] = {"": {"handlers": names, "level": level}}
    for name in _UVICORN_LOGGERS:
        loggers[name] = {"handlers": names, "level": "INFO", "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "coloured": {"()": "spend_categorizer.logger.ColourizedFormatter", "fmt": LOG_FORMAT},
            "plain": {"format": LOG_FORMAT},
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
