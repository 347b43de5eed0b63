"""
Univariate location-scale Student's T distribution.

The distribution has PDF:

.. math::
    p(x|\\mu,\\sigma,\\nu) = \\frac{\\Gamma((\\nu+1)/2)}{\\Gamma(\\nu/2)\\sqrt{\\nu\\pi}\\,\\sigma}
    \\left(1 + \\frac{1}{\\nu}\\left(\\frac{x-\\mu}{\\sigma}\\right)^2\\right)^{-(\\nu+1)/2}

In the Gaussian limit :math:`\\nu \\to \\infty` it is :math:`N(\\mu, \\sigma^2)`.

This is the one-dimensional marginal of
:class:`~mvstudent.distributions.multivariate.MultivariateStudentT`.
"""

import math
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy import stats
from scipy.special import gammaln

from mvstudent.base import Distribution
from mvstudent.params import FiniteDof, GaussianLimit, StudentTParams, as_dof
from mvstudent.utils.random import RandomState, as_generator, resolve_rng


class StudentT(Distribution):
    """
    Univariate Student's T with location ``mu``, scale ``sigma`` and ``nu``
    degrees of freedom.

    Parameters
    ----------
    mu : float
        Location.
    sigma : float
        Scale, :math:`\\sigma > 0`.
    nu : float, FiniteDof or GaussianLimit
        Degrees of freedom; ``np.inf`` selects the Gaussian limit.
    random_state : int or Generator, optional
        Random source bound to this instance and used by :meth:`rvs` when no
        explicit ``random_state`` is given.

    Examples
    --------
    >>> dist = StudentT(mu=0.0, sigma=2.0, nu=5.0)
    >>> dist.var()
    6.666666666666667
    """

    def __init__(self, mu: float, sigma: float, nu, random_state: RandomState = None):
        mu = float(mu)
        sigma = float(sigma)
        if not math.isfinite(mu):
            raise ValueError(f"Location must be finite, got {mu}")
        if not math.isfinite(sigma) or sigma <= 0:
            raise ValueError(f"Scale must be positive, got {sigma}")
        self._mu = mu
        self._sigma = sigma
        self._dof = as_dof(nu)
        self._rng = as_generator(random_state)

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def sigma(self) -> float:
        return self._sigma

    @property
    def dof(self):
        """Degrees of freedom as :class:`FiniteDof` or :class:`GaussianLimit`."""
        return self._dof

    @property
    def nu(self) -> float:
        """Degrees of freedom as a float (``inf`` in the Gaussian limit)."""
        return self._dof.nu

    @property
    def classical_params(self) -> StudentTParams:
        return StudentTParams(mu=self._mu, sigma=self._sigma, nu=self._dof)

    def logpdf(self, x: ArrayLike) -> Union[float, NDArray[np.floating]]:
        x = np.asarray(x, dtype=float)
        z = (x - self._mu) / self._sigma
        dof = self._dof
        if isinstance(dof, GaussianLimit):
            result = -0.5 * np.log(2 * np.pi) - np.log(self._sigma) - 0.5 * z ** 2
        else:
            nu = dof.value
            const = (gammaln((nu + 1) / 2) - gammaln(nu / 2)
                     - 0.5 * np.log(nu * np.pi) - np.log(self._sigma))
            result = const - 0.5 * (nu + 1) * np.log1p(z ** 2 / nu)
        if result.ndim == 0:
            return float(result)
        return result

    def rvs(self, size=None, random_state: RandomState = None) -> Union[float, NDArray]:
        """
        Generate samples as :math:`\\mu + \\sigma Z \\sqrt{\\nu / U}` with
        :math:`Z \\sim N(0, 1)` and :math:`U \\sim \\chi^2_\\nu`.

        Returns a float for ``size=None``.
        """
        rng = resolve_rng(random_state, self._rng)
        z = rng.standard_normal(size)
        if isinstance(self._dof, FiniteDof):
            nu = self._dof.value
            z = z * np.sqrt(nu / rng.chisquare(nu, size))
        result = self._mu + self._sigma * z
        if size is None:
            return float(result)
        return result

    def mean(self) -> float:
        return self._mu

    def var(self) -> float:
        """Variance :math:`\\sigma^2 \\nu / (\\nu - 2)`; :math:`\\sigma^2` in the Gaussian limit."""
        if isinstance(self._dof, GaussianLimit):
            return self._sigma ** 2
        nu = self._dof.value
        return self._sigma ** 2 * nu / (nu - 2)

    def to_scipy(self):
        """Equivalent frozen ``scipy.stats.t`` (``scipy.stats.norm`` in the Gaussian limit)."""
        if isinstance(self._dof, GaussianLimit):
            return stats.norm(loc=self._mu, scale=self._sigma)
        return stats.t(df=self._dof.value, loc=self._mu, scale=self._sigma)

    def __repr__(self) -> str:
        return f"StudentT(μ={self._mu:.4f}, σ={self._sigma:.4f}, ν={self.nu:.4g})"
