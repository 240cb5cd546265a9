"""Configuration package."""

from bizsuite.config.settings import BizSuiteConfig, get_settings

__all__ = ["BizSuiteConfig", "get_settings"]
