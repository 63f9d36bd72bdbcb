"""
Structured logging for the memory engine.

All modules log through ``get_logger(__name__)``. Nothing is configured at
import time: entry points (the API startup hook, ``memory-admin``) call
``configure_logging`` with the loaded settings, and calling it again applies
the new level and renderer.
"""

import logging
from typing import Optional

import structlog

from tutor_memory.config.settings import LoggingCfg


def configure_logging(cfg: Optional[LoggingCfg] = None) -> None:
    """
    Configure structlog with JSON (or console) rendering.

    Args:
        cfg: Logging configuration (defaults to INFO + JSON)
    """
    cfg = cfg or LoggingCfg()
    level = getattr(logging, cfg.log_level.upper(), logging.INFO)

    # No-op when the root logger already has handlers; the level is set regardless
    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if cfg.json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str):
    """Get a lazily bound structlog logger."""
    return structlog.get_logger(name)
