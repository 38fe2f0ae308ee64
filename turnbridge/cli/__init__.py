"""Command-line interface for turnbridge."""

from .main import app, main


__all__ = ["app", "main"]
