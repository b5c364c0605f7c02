"""Visit-context task resolution."""

from .resolver import resolve

__all__ = ["resolve"]
