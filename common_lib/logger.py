import logging
import sys

_logging_configured = False

_TEXT_FORMAT = "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"


def setup_logging(level: str | None = None, log_format: str | None = None, force: bool = False):
    """루트 로거 설정(Configure the root logger once per process).

    Args:
        level: Log level name; defaults to ``Settings.log_level``
        log_format: ``text`` or ``json``; defaults to ``Settings.log_format``
        force: Reconfigure even if logging was already set up
    """
    global _logging_configured
    if _logging_configured and not force:
        return

    if level is None or log_format is None:
        from .config import get_settings

        settings = get_settings()
        level = level or settings.log_level
        log_format = log_format or settings.log_format

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        from .observability import CustomJsonFormatter

        handler.setFormatter(CustomJsonFormatter("%(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        handlers=[handler],
        force=True,  # 기존 설정 강제 덮어쓰기
    )

    # 라이브러리 로그 레벨 조정
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str):
    """명명된 로거 가져오기(Get a named logger).

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    setup_logging()
    return logging.getLogger(name)
