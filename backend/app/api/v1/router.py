from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.requirements import router as requirements_router
from backend.app.api.v1.endpoints.assignments import router as assignments_router
from backend.app.api.v1.endpoints.parties import router as parties_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(requirements_router, tags=["requirements"])
router.include_router(assignments_router, tags=["assignments"])
router.include_router(parties_router, tags=["parties"])
