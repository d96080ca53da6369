"""
HTTP API - FastAPI app, request schemas and sessions.
"""

from .app import create_app
from .session import Session, SessionSerializer, SignedSessionSerializer

__all__ = ["create_app", "Session", "SessionSerializer", "SignedSessionSerializer"]
