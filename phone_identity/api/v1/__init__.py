"""
API v1 package.

Contains versioned API routes for the phone identity service.
"""

from phone_identity.api.v1.routes import router

__all__ = ["router"]
