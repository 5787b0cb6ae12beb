"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: The function key is applied at the include_router level using
FastAPI's dependencies parameter, the same way every other guard would
be. Health and negotiate are open.
"""

from fastapi import APIRouter, Depends

from hubrelay.api.health import router as health_router
from hubrelay.api.message import router as message_router
from hubrelay.api.negotiate import router as negotiate_router
from hubrelay.auth.dependencies import require_function_key

api_router = APIRouter(prefix="/api")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(negotiate_router, tags=["hub"])

# Producer routes require the function key
api_router.include_router(
    message_router,
    tags=["hub"],
    dependencies=[Depends(require_function_key)],
)
