"""Shared runtime utilities: Arrow helpers, configuration and logging."""

from . import arrow, config, logging

__all__ = ["arrow", "config", "logging"]
