"""Distributions provided by mvstudent."""

from .multivariate import MultivariateStudentT, MVT, conditional_params
from .univariate import StudentT

__all__ = ['MultivariateStudentT', 'MVT', 'conditional_params', 'StudentT']
