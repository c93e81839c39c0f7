"""Tools infrastructure package."""

from .registry import DefaultToolRegistry

__all__ = ['DefaultToolRegistry']
