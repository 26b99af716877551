# master_matching/__init__.py
"""
Master Matching Service.
Подбор ближайшего доступного мастера под заказ клиента.
"""

__version__ = "1.0.0"
