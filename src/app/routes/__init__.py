"""
FastAPI Routes.

API 라우트 (REST)
"""

from . import cache

__all__ = ["cache"]
