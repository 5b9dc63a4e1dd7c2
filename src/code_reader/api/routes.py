from fastapi import APIRouter

from code_reader.api.routers import flows_router, health_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(flows_router)
