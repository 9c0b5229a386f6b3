"""
Routers package for FastAPI endpoints.

Organized by domain:
- blueprint: Blueprint extraction and live analysis endpoints
"""

from . import blueprint

__all__ = ["blueprint"]
