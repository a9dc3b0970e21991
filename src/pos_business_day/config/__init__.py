"""Configuration for the business-day engine."""

from pos_business_day.config.logging import configure_logging, get_logger
from pos_business_day.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging", "get_logger"]
