"""
API route controllers for the SEO Dons CRM.

Routes authenticate the request and delegate to services.
"""

from .health import router as health_router
from .voice_webhooks import router as voice_webhooks_router
from .calling import router as calling_router
from .messages import router as messages_router
from .admin import router as admin_router
from .calendar import router as calendar_router
from .linkedin import router as linkedin_router
from .auth_webhooks import router as auth_webhooks_router

__all__ = [
    "health_router",
    "voice_webhooks_router",
    "calling_router",
    "messages_router",
    "admin_router",
    "calendar_router",
    "linkedin_router",
    "auth_webhooks_router",
]
