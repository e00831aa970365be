"""API Package.

FastAPI server for the Bitrix warehouse-document bridge.

Run with:
    uvicorn api.server:create_app --factory --port 5682
"""

from api.server import create_app

__all__ = [
    "create_app",
]
