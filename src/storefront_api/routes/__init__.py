"""API routes package.

All routers are registered in main.py with /api prefix.
"""

from storefront_api.routes.payments import router as payments_router
from storefront_api.routes.webhooks import router as webhooks_router

__all__ = ["payments_router", "webhooks_router"]
