"""Logging setup with pipeline context keys."""

import logging
import sys

CONTEXT_KEYS = ("tenant_id", "survey_id", "response_id", "action_id", "job_id")


class ContextFormatter(logging.Formatter):
    """Append pipeline context passed through ``extra=`` as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) is not None
        ]
        if context:
            message = f"{message} [{' '.join(context)}]"
        return message


def configure_logging(level: str = "INFO") -> None:
    """Install the context formatter on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ContextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


def log_context(**kwargs) -> dict:
    """Build an ``extra`` mapping, dropping empty keys."""
    return {key: value for key, value in kwargs.items() if value is not None}
