"""Base classes for distributions."""

from .distribution import Distribution

__all__ = [
    "Distribution",
]
