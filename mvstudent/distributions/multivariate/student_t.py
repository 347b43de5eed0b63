"""
Multivariate Student's T distribution.

The distribution over :math:`\\mathbb{R}^d` has PDF:

.. math::
    p(x|\\mu,\\Sigma,\\nu) = \\frac{\\Gamma((\\nu+d)/2)}{\\Gamma(\\nu/2)}
    (\\nu\\pi)^{-d/2} |\\Sigma|^{-1/2}
    \\left(1 + \\frac{1}{\\nu}(x-\\mu)^T \\Sigma^{-1} (x-\\mu)\\right)^{-(\\nu+d)/2}

where :math:`\\nu > 2` are the degrees of freedom, :math:`\\mu` is the
location (the mean) and :math:`\\Sigma` is a symmetric positive definite scale
matrix. The covariance is :math:`\\nu / (\\nu - 2) \\Sigma`.

As :math:`\\nu \\to \\infty` the distribution approaches
:math:`N(\\mu, \\Sigma)`. That limit is represented explicitly by
:class:`~mvstudent.params.GaussianLimit` rather than by ``nu = inf``.

Internal storage
----------------
- ``_mu``: location vector, shape ``(d,)``
- ``_sigma``: scale matrix, shape ``(d, d)``, kept for block extraction
- ``_chol``: :class:`~mvstudent.utils.linalg.Cholesky` factor of ``_sigma``
- ``_log_sqrt_det``: :math:`\\frac{1}{2}\\log|\\Sigma|`

All arrays are private read-only copies. Instances never change after
construction; :meth:`~MultivariateStudentT.condition` and
:meth:`~MultivariateStudentT.marginal` return new instances.

References
----------
Roth, M. (2013). On the multivariate t distribution. Technical report
LiTH-ISY-R-3059, Linköping University.
"""

import math
import numbers
import warnings
from functools import cached_property
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy import stats
from scipy.special import gammaln

from mvstudent.base import Distribution
from mvstudent.distributions.univariate import StudentT
from mvstudent.exceptions import find_stack_level
from mvstudent.params import (
    DegreesOfFreedom,
    FiniteDof,
    GaussianLimit,
    MultivariateStudentTParams,
    as_dof,
)
from mvstudent.utils.linalg import (
    Cholesky,
    complement_indices,
    subset_sym,
    validate_indices,
)
from mvstudent.utils.random import RandomState, as_generator, resolve_rng

# Above this value gammaln((nu + d)/2) - gammaln(nu/2) loses about three digits.
LARGE_NU_WARNING_THRESHOLD = 1e12


class MultivariateStudentT(Distribution):
    """
    Multivariate Student's T distribution.

    Parameters
    ----------
    mu : array_like
        Location vector, shape ``(d,)``. Must be non-empty.
    sigma : array_like
        Scale matrix, shape ``(d, d)``, symmetric positive definite.
        A scalar is accepted for ``d = 1`` and a 1-D array is taken as a
        diagonal.
    nu : float, FiniteDof or GaussianLimit
        Degrees of freedom, :math:`\\nu > 2`. ``np.inf`` selects the
        Gaussian limit.
    random_state : int or Generator, optional
        Random source owned by this instance and used by :meth:`rvs` when
        no explicit ``random_state`` is given. Not safe to share between
        threads that sample concurrently.
    symmetry_rtol, symmetry_atol : float, optional
        Tolerances for the symmetry check on ``sigma``.

    Raises
    ------
    ValueError
        For invalid shapes, non-finite values, an asymmetric ``sigma`` or
        invalid degrees of freedom.
    FactorizationError
        If ``sigma`` is not positive definite to working precision.

    Examples
    --------
    >>> mu = np.array([1.0, 2.0])
    >>> sigma = np.array([[1.0, 0.5], [0.5, 1.0]])
    >>> dist = MultivariateStudentT.from_classical_params(mu=mu, sigma=sigma, nu=5.0)
    >>> dist.mean()
    array([1., 2.])
    >>> cond = dist.condition([0], [1.5])
    >>> cond.d, cond.nu
    (1, 6.0)
    """

    def __init__(
        self,
        mu: ArrayLike,
        sigma: ArrayLike,
        nu,
        random_state: RandomState = None,
        *,
        symmetry_rtol: float = 1e-10,
        symmetry_atol: float = 1e-10,
    ):
        dof = as_dof(nu)
        mu = np.asarray(mu, dtype=float).flatten()
        sigma = np.asarray(sigma, dtype=float)

        d = len(mu)
        if d == 0:
            raise ValueError("Location vector must not be empty")

        # Scalar sigma for the 1D case, vector sigma as a diagonal
        if sigma.ndim == 0:
            sigma = np.array([[float(sigma)]])
        elif sigma.ndim == 1:
            sigma = np.diag(sigma)

        if sigma.shape != (d, d):
            raise ValueError(f"sigma shape {sigma.shape} doesn't match mu dimension {d}")
        if not np.all(np.isfinite(mu)):
            raise ValueError("Location vector must be finite")
        if not np.all(np.isfinite(sigma)):
            raise ValueError("Scale matrix must be finite")
        if not np.allclose(sigma, sigma.T, rtol=symmetry_rtol, atol=symmetry_atol):
            raise ValueError("Scale matrix must be symmetric")

        # Raises FactorizationError before any state is stored
        chol = Cholesky.factorize(sigma)

        if isinstance(dof, FiniteDof) and dof.value > LARGE_NU_WARNING_THRESHOLD:
            warnings.warn(
                f"Degrees of freedom {dof.value:.3g} are large enough to lose "
                f"precision in the log normalizer; consider GaussianLimit()",
                RuntimeWarning,
                stacklevel=find_stack_level(),
            )

        self._d = d
        self._dof = dof
        self._mu = mu.copy()
        self._mu.setflags(write=False)
        self._sigma = sigma.copy()
        self._sigma.setflags(write=False)
        self._chol = chol
        self._log_sqrt_det = 0.5 * chol.log_det()
        self._rng = as_generator(random_state)

    @classmethod
    def from_classical_params(
        cls,
        mu: ArrayLike,
        sigma: ArrayLike,
        nu,
        random_state: RandomState = None,
        **kwargs,
    ) -> 'MultivariateStudentT':
        """
        Build a distribution from location, scale and degrees of freedom.

        Copies ``mu`` and ``sigma`` and factorizes ``sigma``. See the class
        docstring for parameters and raised exceptions.
        """
        return cls(mu, sigma, nu, random_state, **kwargs)

    build = from_classical_params

    @classmethod
    def from_scipy(cls, rv, random_state: RandomState = None) -> 'MultivariateStudentT':
        """
        Create from a frozen ``scipy.stats.multivariate_t``.

        scipy returns a frozen ``multivariate_normal`` for ``df=np.inf``;
        such objects, as well as the output of :meth:`to_scipy` in the
        Gaussian limit, give a :class:`GaussianLimit` distribution.
        """
        if not hasattr(rv, 'df'):
            return cls(rv.mean, rv.cov, GaussianLimit(), random_state)
        return cls(rv.loc, rv.shape, rv.df, random_state)

    # ============================================================
    # Parameters and cached derived quantities
    # ============================================================

    @property
    def d(self) -> int:
        """Dimension of the distribution."""
        return self._d

    @property
    def dim(self) -> int:
        """Dimension of the distribution (alias of :attr:`d`)."""
        return self._d

    @property
    def dof(self) -> DegreesOfFreedom:
        """Degrees of freedom as :class:`FiniteDof` or :class:`GaussianLimit`."""
        return self._dof

    @property
    def nu(self) -> float:
        """Degrees of freedom as a float (``inf`` in the Gaussian limit)."""
        return self._dof.nu

    @property
    def scale_matrix(self) -> NDArray:
        """Copy of the scale matrix :math:`\\Sigma`."""
        return self._sigma.copy()

    @property
    def L(self) -> NDArray:
        """Copy of the lower Cholesky factor of :math:`\\Sigma`."""
        return self._chol.lower.copy()

    @property
    def log_sqrt_det_Sigma(self) -> float:
        """:math:`\\frac{1}{2}\\log|\\Sigma|`."""
        return self._log_sqrt_det

    @cached_property
    def log_det_Sigma(self) -> float:
        r"""
        Log-determinant of the scale matrix (cached).

        .. math::
            \log|\Sigma| = 2 \sum_{i=1}^d \log L_{ii}
        """
        return 2.0 * self._log_sqrt_det

    @cached_property
    def classical_params(self) -> MultivariateStudentTParams:
        """Frozen dataclass of classical parameters (copies)."""
        return MultivariateStudentTParams(
            mu=self._mu.copy(), sigma=self._sigma.copy(), nu=self._dof
        )

    # ============================================================
    # Density
    # ============================================================

    def logpdf(self, x: ArrayLike) -> Union[float, NDArray[np.floating]]:
        """
        Log probability density.

        .. math::
            \\log p(x) = \\log\\Gamma\\left(\\frac{\\nu+d}{2}\\right)
            - \\log\\Gamma\\left(\\frac{\\nu}{2}\\right)
            - \\frac{d}{2}\\log(\\nu\\pi) - \\frac{1}{2}\\log|\\Sigma|
            - \\frac{\\nu+d}{2}\\log\\left(1 + \\frac{m^2}{\\nu}\\right)

        where :math:`m^2 = (x-\\mu)^T \\Sigma^{-1} (x-\\mu)` is computed with
        a triangular solve against the cached Cholesky factor. For
        :math:`m^2 > \\nu` the last term is evaluated as
        :math:`2\\log r + \\log(1 + r^{-2})` with :math:`r = m/\\sqrt{\\nu}`,
        which stays finite for points far beyond ``1e154``. In the Gaussian
        limit this is the Normal log density, ``-inf`` once :math:`m^2`
        overflows.

        Parameters
        ----------
        x : array_like
            Shape ``(d,)`` for a single point, ``(n, d)`` for n points.

        Returns
        -------
        logpdf : float or ndarray
        """
        x = np.asarray(x, dtype=float)
        d = self._d
        if x.ndim not in (1, 2) or x.shape[-1] != d:
            raise ValueError(f"Expected {d}-dimensional input, got shape {x.shape}")

        m = np.asarray(self._chol.mahalanobis(x, self._mu))

        dof = self._dof
        if isinstance(dof, GaussianLimit):
            with np.errstate(over='ignore'):
                mahal = m ** 2
            result = -0.5 * d * np.log(2 * np.pi) - self._log_sqrt_det - 0.5 * mahal
        else:
            nu = dof.value
            t1 = (gammaln((nu + d) / 2) - gammaln(nu / 2)
                  - 0.5 * d * np.log(nu * np.pi) - self._log_sqrt_det)
            # log(1 + r^2) with r = m / sqrt(nu), without squaring large r
            r = m / np.sqrt(nu)
            big = r > 1
            r_big = np.where(big, r, 1.0)
            r_small = np.where(big, 0.0, r)
            log_term = np.where(
                big,
                2 * np.log(r_big) + np.log1p((1 / r_big) ** 2),
                np.log1p(r_small ** 2),
            )
            result = t1 - 0.5 * (nu + d) * log_term

        if x.ndim == 1:
            return float(result)
        return result

    # ============================================================
    # Sampling
    # ============================================================

    def rvs(self, size=None, random_state: RandomState = None,
            out: Optional[NDArray] = None) -> NDArray:
        """
        Generate random samples.

        If :math:`Y \\sim N(0, \\Sigma)` and :math:`U \\sim \\chi^2_\\nu`
        independently, then :math:`X = \\mu + Y \\sqrt{\\nu / U}` follows
        this distribution. :math:`Y = L Z` with :math:`Z \\sim N(0, I)`.
        In the Gaussian limit no chi-squared variate is drawn and
        :math:`X = \\mu + Y`.

        Parameters
        ----------
        size : int or tuple of ints, optional
            Number of samples to generate.
        random_state : int or Generator, optional
            Random source for this call. Defaults to the instance's own
            generator, or a fresh one when none is bound.
        out : ndarray, optional
            Destination array with the shape of the result. Filled and
            returned.

        Returns
        -------
        samples : ndarray
            Shape ``(d,)`` for ``size=None``, ``(size, d)`` or
            ``(*size, d)`` otherwise.
        """
        d = self._d
        if size is None:
            batch: Tuple[int, ...] = ()
        elif isinstance(size, numbers.Integral):
            batch = (int(size),)
        else:
            batch = tuple(size)
        shape = batch + (d,)

        if out is not None and np.shape(out) != shape:
            raise ValueError(f"out has shape {np.shape(out)}, expected {shape}")

        rng = resolve_rng(random_state, self._rng)

        z = rng.standard_normal(shape)
        y = z @ self._chol.lower.T  # Row-wise L @ z

        dof = self._dof
        if isinstance(dof, FiniteDof):
            nu = dof.value
            if size is None:
                u = rng.chisquare(nu)
            else:
                u = rng.chisquare(nu, batch)[..., np.newaxis]
            y = y * np.sqrt(nu / u)

        result = self._mu + y
        if out is not None:
            out[...] = result
            return out
        return result

    # ============================================================
    # Moments
    # ============================================================

    def mean(self, out: Optional[NDArray] = None) -> NDArray:
        """
        Mean of the distribution: :math:`E[X] = \\mu`.

        If ``out`` is given it must have shape ``(d,)``; the mean is written
        into it and returned.
        """
        if out is None:
            return self._mu.copy()
        if np.shape(out) != (self._d,):
            raise ValueError(f"out has shape {np.shape(out)}, expected ({self._d},)")
        out[...] = self._mu
        return out

    def cov(self, out: Optional[NDArray] = None) -> NDArray:
        """
        Covariance matrix :math:`\\frac{\\nu}{\\nu - 2}\\Sigma`.

        Requires :math:`\\nu > 2`; in the Gaussian limit the covariance is
        :math:`\\Sigma`.

        If ``out`` is given it must have shape ``(d, d)``; the covariance is
        written into it and returned.
        """
        d = self._d
        if out is not None and np.shape(out) != (d, d):
            raise ValueError(f"out has shape {np.shape(out)}, expected ({d}, {d})")

        dof = self._dof
        if isinstance(dof, GaussianLimit):
            cov = self._sigma.copy()
        else:
            nu = dof.value
            if nu <= 2:
                raise ValueError(f"Covariance is undefined for nu <= 2, got {nu}")
            cov = self._sigma * (nu / (nu - 2))

        if out is not None:
            out[...] = cov
            return out
        return cov

    def var(self) -> NDArray:
        """Variance (diagonal of the covariance matrix)."""
        return np.diag(self.cov()).copy()

    # ============================================================
    # Conditioning and marginalization
    # ============================================================

    def condition(self, observed: Sequence[int], values: ArrayLike,
                  random_state: RandomState = None) -> 'MultivariateStudentT':
        """
        Distribution of the unobserved coordinates given observed values.

        The result has dimension ``d - len(observed)`` and keeps the
        unobserved coordinates in ascending order: observing coordinate 1
        of a 3-D distribution leaves coordinates ``[0, 2]``.

        Parameters
        ----------
        observed : sequence of int
            Observed coordinate indices. Non-empty, unique, in ``[0, d)``
            and not covering every coordinate.
        values : array_like
            Observed values, same length as ``observed``.
        random_state : int or Generator, optional
            Random source for the new distribution. The parent's generator
            is never passed on.

        Returns
        -------
        dist : MultivariateStudentT
            With :math:`\\nu' = \\nu + k` for :math:`k` observed coordinates.

        Raises
        ------
        ValueError, IndexError
            For invalid ``observed`` or ``values``.
        FactorizationError
            If the observed block of :math:`\\Sigma`, or the conditional scale
            matrix, cannot be factorized to working precision.
        """
        dof, mu, sigma = conditional_params(
            observed, values, self._dof, self._mu, self._sigma
        )
        return type(self)(mu, sigma, dof, random_state)

    def marginal(self, indices: Sequence[int],
                 random_state: RandomState = None) -> 'MultivariateStudentT':
        """
        Marginal distribution of the given coordinates.

        .. math::
            p(x_i) = \\int p(x_i, x_o) \\, dx_o

        The result keeps the order of ``indices`` and the same degrees of
        freedom.

        Parameters
        ----------
        indices : sequence of int
            Coordinates to keep. Non-empty, unique, in ``[0, d)``.
        random_state : int or Generator, optional
            Random source for the new distribution.

        Raises
        ------
        FactorizationError
            If the extracted block cannot be factorized. A principal
            sub-matrix of a positive definite matrix is positive definite,
            but finite precision can still make the factorization fail.
        """
        idx = validate_indices(indices, self._d)
        return type(self)(
            self._mu[idx], subset_sym(self._sigma, idx), self._dof, random_state
        )

    def marginal_single(self, index: int, random_state: RandomState = None) -> StudentT:
        """
        Marginal distribution of a single coordinate as a univariate
        :class:`~mvstudent.distributions.univariate.StudentT` with location
        :math:`\\mu_i`, scale :math:`\\sqrt{\\Sigma_{ii}}` and the same
        degrees of freedom.
        """
        if isinstance(index, bool) or not isinstance(index, numbers.Integral):
            raise ValueError(f"Index must be an integer, got {index!r}")
        if index < 0 or index >= self._d:
            raise IndexError(f"Index {index} out of bounds for dimension {self._d}")
        return StudentT(
            mu=self._mu[index],
            sigma=math.sqrt(self._sigma[index, index]),
            nu=self._dof,
            random_state=random_state,
        )

    # ============================================================
    # Scipy compatibility
    # ============================================================

    def to_scipy(self):
        """
        Convert to ``scipy.stats.multivariate_t``, or to
        ``scipy.stats.multivariate_normal`` in the Gaussian limit.
        """
        if isinstance(self._dof, GaussianLimit):
            return stats.multivariate_normal(mean=self._mu, cov=self._sigma)
        return stats.multivariate_t(loc=self._mu, shape=self._sigma, df=self._dof.value)

    def __repr__(self) -> str:
        d = self._d
        nu = f"{self.nu:.4g}"
        if d == 1:
            return f"MultivariateStudentT(μ={self._mu[0]:.4f}, σ²={self._sigma[0, 0]:.4f}, ν={nu})"
        elif d <= 3:
            mu_str = ", ".join(f"{x:.4f}" for x in self._mu)
            return f"MultivariateStudentT(μ=[{mu_str}], ν={nu}, d={d})"
        else:
            return f"MultivariateStudentT(d={d}, ν={nu})"


def conditional_params(
    observed: Sequence[int],
    values: ArrayLike,
    dof: DegreesOfFreedom,
    mu: NDArray,
    sigma: NDArray,
) -> Tuple[DegreesOfFreedom, NDArray, NDArray]:
    """
    Parameters of a Student's T conditioned on observed coordinates.

    With :math:`1` the unobserved and :math:`2` the observed block,
    :math:`\\delta = v - \\mu_2` and :math:`k` observed coordinates:

    .. math::
        \\mu_1' &= \\mu_1 + \\Sigma_{21}^T \\Sigma_{22}^{-1} \\delta \\\\
        \\Sigma_{11}' &= \\frac{\\nu + \\delta^T \\Sigma_{22}^{-1} \\delta}{\\nu + k}
            \\left(\\Sigma_{11} - \\Sigma_{21}^T \\Sigma_{22}^{-1} \\Sigma_{21}\\right) \\\\
        \\nu' &= \\nu + k

    In the Gaussian limit the scale factor is omitted and :math:`\\nu` stays
    infinite, which gives the Normal conditional.

    Parameters
    ----------
    observed : sequence of int
        Observed coordinates.
    values : array_like
        Observed values.
    dof : FiniteDof or GaussianLimit
    mu : ndarray, shape (d,)
    sigma : ndarray, shape (d, d)

    Returns
    -------
    dof, mu, sigma : tuple
        Parameters of the conditional distribution. ``sigma`` is exactly
        symmetric.

    Raises
    ------
    ValueError, IndexError
        For invalid ``observed``/``values`` or if every coordinate is
        observed.
    FactorizationError
        If :math:`\\Sigma_{22}` is not positive definite to working precision.
    """
    d = len(mu)
    if len(observed) == 0:
        raise ValueError("No observed coordinates")
    values = np.asarray(values, dtype=float)
    if values.ndim != 1 or len(values) != len(observed):
        raise ValueError(
            f"Got {values.size} values for {len(observed)} observed coordinates"
        )

    obs = validate_indices(observed, d)
    unobs = complement_indices(obs, d)
    if unobs.size == 0:
        raise ValueError("All dimensions observed")
    k = obs.size

    mu1 = mu[unobs]
    delta = values - mu[obs]

    sigma11 = subset_sym(sigma, unobs)
    sigma22 = subset_sym(sigma, obs)
    sigma21 = sigma[np.ix_(obs, unobs)]

    chol = Cholesky.factorize(sigma22)

    # μ₁ + Σ₂₁ᵀ Σ₂₂⁻¹ (v - μ₂)
    t = chol.solve_vec(delta)
    mu1 = mu1 + sigma21.T @ t

    # Σ₁₁ - Σ₂₁ᵀ Σ₂₂⁻¹ Σ₂₁, upper triangle mirrored
    schur = sigma11 - sigma21.T @ chol.solve(sigma21)
    upper = np.triu(schur)
    sigma11 = upper + np.triu(upper, 1).T

    if isinstance(dof, GaussianLimit):
        return dof, mu1, sigma11

    nu = dof.value
    beta = float(delta @ t)
    sigma11 = sigma11 * ((nu + beta) / (nu + k))
    return dof.add(k), mu1, sigma11
