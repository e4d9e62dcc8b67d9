import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# SDKs de provider logam cada request HTTP em INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aio_pika", "aiormq")


def setup_logging(level: str = "INFO") -> None:
    """Configura o logging do processo (API ou CLI)."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    # uvicorn/pytest may already have installed handlers
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
