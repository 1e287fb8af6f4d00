"""Cardiva web route modules.

Each module exports a ``router`` (APIRouter instance) for one functional
area; ``cardiva.web.app`` includes them all.

Usage:
    from cardiva.web.routes import review
    app.include_router(review.router)
"""

from cardiva.web.routes import (
    admin,
    auth,
    dashboard,
    events,
    exports,
    health,
    inventory,
    review,
    rfps,
)

__all__ = [
    "admin",
    "auth",
    "dashboard",
    "events",
    "exports",
    "health",
    "inventory",
    "review",
    "rfps",
]
