"""API Routes Package."""

from api.routes import health, init, documents

__all__ = [
    "health",
    "init",
    "documents",
]
