# master_matching/config/__init__.py
"""
Модуль конфигурации.
Экспортирует настройки приложения.
"""

from master_matching.config.loader import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
