"""
mvstudent: the multivariate Student's T distribution.

Implements the multivariate Student's T distribution with a scipy-like API,
including its Gaussian limit as an explicit degrees-of-freedom variant.

Key features:
- Density evaluation and sampling from a cached Cholesky factor
- Conditioning on observed coordinates (Schur complement update)
- Marginalization onto a subset of coordinates, or onto a single
  coordinate as a univariate Student's T
- Frozen dataclass parameter containers (mvstudent.params)
- Numerical failures reported as FactorizationError, never regularized away
"""

from mvstudent.distributions import (
    MVT,
    MultivariateStudentT,
    StudentT,
    conditional_params,
)
from mvstudent.exceptions import FactorizationError
from mvstudent.params import (
    DegreesOfFreedom,
    FiniteDof,
    GaussianLimit,
    MultivariateStudentTParams,
    StudentTParams,
    as_dof,
)
from mvstudent.utils.linalg import Cholesky

__all__ = [
    # Distributions
    "MultivariateStudentT",
    "MVT",
    "StudentT",
    "conditional_params",
    # Degrees of freedom
    "DegreesOfFreedom",
    "FiniteDof",
    "GaussianLimit",
    "as_dof",
    # Parameter dataclasses
    "MultivariateStudentTParams",
    "StudentTParams",
    # Errors and linear algebra
    "FactorizationError",
    "Cholesky",
]
