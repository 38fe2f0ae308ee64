"""API layer for turnbridge."""

from .app import create_app


__all__ = ["create_app"]
