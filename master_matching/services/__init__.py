# master_matching/services/__init__.py
"""
Внешние интерфейсы сервиса (HTTP).
"""
