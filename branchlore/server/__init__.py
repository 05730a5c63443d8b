"""HTTP API for branchlore."""

from .app import create_app

__all__ = ["create_app"]
