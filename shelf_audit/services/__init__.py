"""Runnable service entrypoints."""

__all__ = ["audit_api"]
