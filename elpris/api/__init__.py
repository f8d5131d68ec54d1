"""
API package for the Elpris service.
Contains FastAPI route handlers.
"""

from .routes import router

__all__ = [
    "router",
]
