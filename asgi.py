"""
asgi.py -- ASGI entry point for Session Auth.

Run with:  uvicorn asgi:app --reload

api/main.py builds the app; this module only re-exports it so deployment
configuration names one stable target.
"""

from api.main import app

__all__ = ["app"]
