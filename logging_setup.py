# logging_setup.py
import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """stdlib logging (uvicorn, httpx ...) -> loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<7}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(log_level: str = "INFO") -> None:
    """
    콘솔 sink 하나 + stdlib logging 흡수.
    앱 시작 시 한 번만 호출한다.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        colorize=True,
        backtrace=False,
        diagnose=False,
        level=log_level.upper(),
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
        std_logger = logging.getLogger(noisy)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
