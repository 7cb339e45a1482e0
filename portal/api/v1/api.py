"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from portal.api.v1.endpoints import (
    announcements,
    auth,
    cities,
    health,
    logs,
    menu_types,
    menus,
    users,
)

api_router = APIRouter()

# Registration, login, tokens, password recovery, role areas
api_router.include_router(auth.router)

# Own account and user management
api_router.include_router(users.router)

# Catalogues and content
api_router.include_router(cities.router)
api_router.include_router(menu_types.router)
api_router.include_router(menus.router)
api_router.include_router(announcements.router)

# Audit trail
api_router.include_router(logs.router)

api_router.include_router(health.router)
