# src/config/__init__.py
"""
Настройки сервиса выплат: `from src.config import settings`.
"""

from src.config.loader import ConfigSection, Settings, get_settings, settings

__all__ = ["ConfigSection", "Settings", "get_settings", "settings"]
