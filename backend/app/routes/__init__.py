"""Routes package."""
from backend.app.routes import pdf

__all__ = ["pdf"]
