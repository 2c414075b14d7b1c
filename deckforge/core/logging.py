import logging
import os
from typing import Any, Optional


DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | user=%(user_id)s deck=%(deck_id)s | %(message)s"
)


class ContextFilter(logging.Filter):
    """Fills in user/deck fields so records logged without context still format."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "user_id"):
            record.user_id = "-"
        if not hasattr(record, "deck_id"):
            record.deck_id = "-"
        return True


class RunLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every record of one generation run."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Initialize the root logger once for the API process or the CLI."""
    resolved_level = getattr(logging, (level or DEFAULT_LEVEL), logging.INFO)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(resolved_level)

    # Uvicorn reloads re-run this; drop handlers from the previous run
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; ensure root is initialized."""
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)


def run_logger(name: str, *, user_id: Any, deck_id: Any = "-") -> RunLogger:
    return RunLogger(get_logger(name), {"user_id": user_id, "deck_id": deck_id})
