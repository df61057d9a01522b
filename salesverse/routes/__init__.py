"""
Routers FastAPI (montés sous /api dans server.py)
"""
