"""API package for shelf audit services."""

from .app import create_app, get_app
from .services import AuditService

__all__ = ["AuditService", "create_app", "get_app"]
