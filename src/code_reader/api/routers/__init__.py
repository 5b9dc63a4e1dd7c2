from code_reader.api.routers.flows import router as flows_router
from code_reader.api.routers.health import router as health_router

__all__ = [
    "flows_router",
    "health_router",
]
