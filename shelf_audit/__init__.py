"""Shelf audit runtime package."""

__version__ = "0.1.0"

from .config import constants, settings

__all__ = [
    "config",
    "constants",
    "settings",
]
