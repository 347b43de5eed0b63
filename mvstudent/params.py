"""
Frozen dataclass parameter containers and the degrees-of-freedom type.

The degrees of freedom :math:`\\nu` of a Student's T distribution take one of
two forms:

- :class:`FiniteDof`: a finite value :math:`\\nu > 2`.
- :class:`GaussianLimit`: the limit :math:`\\nu \\to \\infty`, where the
  Student's T reduces to a Normal distribution.

Code that needs to branch on the limit checks the variant with
``isinstance`` (or ``dof.is_gaussian``) instead of comparing floats against
infinity.

Each distribution's classical parameters are represented as a frozen dataclass
with ``slots=True``. This provides:

- **IDE autocompletion**: ``params.mu`` instead of ``params['mu']``
- **Immutability**: Prevents accidental mutation of parameters
- **Dict conversion**: ``dataclasses.asdict(params)`` when needed

Examples
--------
>>> from mvstudent.params import as_dof, FiniteDof, GaussianLimit
>>> as_dof(5.0)
FiniteDof(value=5.0)
>>> as_dof(float('inf'))
GaussianLimit()
>>> as_dof(5.0).add(2)
FiniteDof(value=7.0)
"""

import math
import numbers
from dataclasses import dataclass, fields
from typing import Union

import numpy as np


class _ParamsBase:
    """Mixin providing dict-style access on frozen dataclass params.

    Allows both ``params.mu`` and ``params['mu']`` access styles,
    plus ``items()``, ``keys()``, ``values()`` for iteration.
    """

    __slots__ = ()

    def __getitem__(self, key: str):
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key)

    def __contains__(self, key: str) -> bool:
        return hasattr(self, key)

    def keys(self):
        """Yield field names."""
        return (f.name for f in fields(self))

    def values(self):
        """Yield field values."""
        return (getattr(self, f.name) for f in fields(self))

    def items(self):
        """Yield ``(name, value)`` pairs."""
        return ((f.name, getattr(self, f.name)) for f in fields(self))


# ============================================================================
# Degrees of freedom
# ============================================================================

@dataclass(frozen=True, slots=True)
class FiniteDof:
    """
    Finite degrees of freedom :math:`\\nu > 2`.

    Attributes
    ----------
    value : float
        Degrees of freedom. Must be finite and strictly greater than 2.
    """
    value: float

    def __post_init__(self):
        value = self.value
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ValueError(f"Degrees of freedom must be a real scalar, got {value!r}")
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Finite degrees of freedom must be finite, got {value}")
        if value <= 2.0:
            raise ValueError(f"Degrees of freedom must be greater than 2, got {value}")
        object.__setattr__(self, 'value', value)

    @property
    def nu(self) -> float:
        """Degrees of freedom as a float."""
        return self.value

    @property
    def is_gaussian(self) -> bool:
        return False

    def add(self, k: float) -> 'FiniteDof':
        """Degrees of freedom increased by ``k``."""
        return FiniteDof(self.value + k)


@dataclass(frozen=True, slots=True)
class GaussianLimit:
    """Marker for the Gaussian limit :math:`\\nu = +\\infty`."""

    @property
    def nu(self) -> float:
        """Degrees of freedom as a float (``inf``)."""
        return math.inf

    @property
    def is_gaussian(self) -> bool:
        return True

    def add(self, k: float) -> 'GaussianLimit':
        """The Gaussian limit absorbs any finite increment."""
        return self


DegreesOfFreedom = Union[FiniteDof, GaussianLimit]


def as_dof(nu) -> DegreesOfFreedom:
    """
    Normalize user input to a :data:`DegreesOfFreedom` value.

    Parameters
    ----------
    nu : float, FiniteDof or GaussianLimit
        Degrees of freedom. ``float('inf')`` (or ``np.inf``) is mapped to
        :class:`GaussianLimit`.

    Returns
    -------
    dof : FiniteDof or GaussianLimit

    Raises
    ------
    ValueError
        If ``nu`` is not a real scalar, is NaN or ``-inf``, or is a finite
        value not greater than 2.
    """
    if isinstance(nu, (FiniteDof, GaussianLimit)):
        return nu
    if isinstance(nu, np.ndarray) and nu.ndim == 0:
        nu = nu.item()
    if isinstance(nu, bool) or not isinstance(nu, numbers.Real):
        raise ValueError(f"Degrees of freedom must be a real scalar, got {nu!r}")
    nu = float(nu)
    if math.isnan(nu):
        raise ValueError("Degrees of freedom must not be NaN")
    if nu == math.inf:
        return GaussianLimit()
    return FiniteDof(nu)


# ============================================================================
# Distribution parameters
# ============================================================================

@dataclass(frozen=True, slots=True)
class StudentTParams(_ParamsBase):
    """
    Classical parameters for the univariate location-scale Student's T.

    Attributes
    ----------
    mu : float
        Location parameter.
    sigma : float
        Scale parameter :math:`\\sigma > 0`.
    nu : FiniteDof or GaussianLimit
        Degrees of freedom.
    """
    mu: float
    sigma: float
    nu: DegreesOfFreedom


@dataclass(frozen=True, slots=True)
class MultivariateStudentTParams(_ParamsBase):
    """
    Classical parameters for the multivariate Student's T distribution.

    Attributes
    ----------
    mu : np.ndarray
        Location vector, shape ``(d,)``.
    sigma : np.ndarray
        Scale matrix, shape ``(d, d)``. The covariance is
        :math:`\\nu / (\\nu - 2) \\Sigma`.
    nu : FiniteDof or GaussianLimit
        Degrees of freedom.
    """
    mu: np.ndarray
    sigma: np.ndarray
    nu: DegreesOfFreedom


__all__ = [
    "FiniteDof",
    "GaussianLimit",
    "DegreesOfFreedom",
    "as_dof",
    "StudentTParams",
    "MultivariateStudentTParams",
]
