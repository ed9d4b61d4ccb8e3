from .project_router import router as project_router
from .health_router import router as health_router

__all__ = ["project_router", "health_router"]
