"""Logging configuration for applications embedding VaultSync."""

from __future__ import annotations

import logging

import json_log_formatter

from .config import Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure root logging based on settings.

    Args:
        settings: Settings to read level and format from
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
