# master_matching/services/matching_api/__init__.py
"""
HTTP API сервиса подбора мастера.
"""
