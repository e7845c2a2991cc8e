import logging, os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_ROOT_NAME = "scanner_service"


def setup_logging(level=None):
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(_ROOT_NAME)
    logger.setLevel(resolved)

    # Avoid duplicate console handlers when create_app runs more than once
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    for h in logger.handlers:
        h.setLevel(resolved)

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(_ROOT_NAME)
    if not name:
        return base
    if name.startswith(_ROOT_NAME + "."):
        name = name[len(_ROOT_NAME) + 1:]
    return base.getChild(name)
