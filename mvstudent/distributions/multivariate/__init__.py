"""Multivariate distributions."""

from .student_t import MultivariateStudentT, conditional_params

# Alias for convenience
MVT = MultivariateStudentT

__all__ = ['MultivariateStudentT', 'MVT', 'conditional_params']
