"""API routes for turnbridge."""

from .health import router as health_router
from .models import router as models_router
from .turns import router as turns_router


__all__ = ["health_router", "models_router", "turns_router"]
