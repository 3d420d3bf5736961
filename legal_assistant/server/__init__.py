"""
FastAPI Server for the Legal Assistant.

This package provides the HTTP and SSE surface over the chat pipeline.
"""

from .main import app, create_app
from .config import Settings, get_settings

__all__ = [
    "app",
    "create_app",
    # Config
    "Settings",
    "get_settings",
]
