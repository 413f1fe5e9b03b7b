"""API v1 router aggregator.

All v1 endpoint routers are included here, mounted at /api/v1.
"""

from fastapi import APIRouter

from passage.api.v1 import auth, auth_oauth, auth_password, users

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

_AUTH_PREFIX = "/auth"

router.include_router(auth.router, prefix=_AUTH_PREFIX, tags=["auth"])
router.include_router(
    auth_password.router, prefix=f"{_AUTH_PREFIX}/password", tags=["auth"]
)
router.include_router(auth_oauth.router, prefix=f"{_AUTH_PREFIX}/oauth", tags=["auth"])

# =============================================================================
# Users
# =============================================================================

router.include_router(users.router, prefix="/users", tags=["users"])
