"""API middleware for turnbridge."""

from .errors import setup_error_handlers
from .preflight import PreflightMiddleware


__all__ = ["PreflightMiddleware", "setup_error_handlers"]
