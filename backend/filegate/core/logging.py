import logging

from filegate.core.config import get_settings

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the root logger once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (level or get_settings().log_level).upper()
    resolved_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(resolved_level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(resolved_level)

    # boto emits request-level noise at DEBUG
    for name in ("botocore", "boto3", "urllib3"):
        logging.getLogger(name).setLevel(max(resolved_level, logging.INFO))

    _CONFIGURED = True
