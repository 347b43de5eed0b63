"""Utility functions for mvstudent package."""

from .linalg import Cholesky, complement_indices, subset_sym, validate_indices
from .random import as_generator, resolve_rng

__all__ = [
    'Cholesky', 'complement_indices', 'subset_sym', 'validate_indices',
    'as_generator', 'resolve_rng',
]
