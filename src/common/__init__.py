# src/common/__init__.py
"""
Общие константы, исключения и логирование сервиса выплат.
"""

from src.common.constants import TypeMsg
from src.common.logger import log_debug, log_error, log_info, log_warning, setup_logging

__all__ = ["TypeMsg", "log_debug", "log_error", "log_info", "log_warning", "setup_logging"]
