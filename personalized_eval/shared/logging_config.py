"""Logging setup for processes embedding the evaluation core."""

import logging

from personalized_eval.shared.config import get_settings


def setup_logging(level: str | None = None) -> None:
    """Configure root logging.

    Production uses a JSON-like single-line format that log aggregators can
    parse; other environments get a human-readable format.

    Args:
        level: Optional level name overriding ``LOG_LEVEL``
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    if settings.is_production:
        log_format = (
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}'
        )
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    # SDK request logs are noisy at INFO
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
