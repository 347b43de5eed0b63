"""
Base class for probability distributions with scipy-like API.

This module provides an abstract base class that defines the standard interface
for the distributions of this package, similar to ``scipy.stats``.

The API includes:

- **Density functions**: :meth:`pdf`, :meth:`logpdf`
- **Random sampling**: :meth:`rvs`
- **Moments**: :meth:`mean`, :meth:`var`, :meth:`std`, :meth:`stats`
- **Scoring**: :meth:`score` (mean log-likelihood)

Distributions are immutable once constructed. Derived quantities that are
expensive to compute are cached with ``functools.cached_property``; since
parameters never change, no invalidation is needed.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union
import numpy as np
from numpy.typing import ArrayLike, NDArray


class Distribution(ABC):
    """
    Abstract base class for probability distributions.

    Subclasses implement :meth:`logpdf` and :meth:`rvs`; :meth:`pdf`,
    :meth:`std`, :meth:`stats` and :meth:`score` are derived from them.
    """

    @abstractmethod
    def logpdf(self, x: ArrayLike) -> Union[float, NDArray[np.floating]]:
        """
        Log of the probability density function.

        Parameters
        ----------
        x : array_like
            Points at which to evaluate the log PDF.

        Returns
        -------
        logpdf : float or ndarray
            Log probability density at each point.
        """

    def pdf(self, x: ArrayLike) -> Union[float, NDArray[np.floating]]:
        """
        Probability density: p(x) = exp(logpdf(x)).
        """
        return np.exp(self.logpdf(x))

    @abstractmethod
    def rvs(self, size: Optional[Union[int, tuple]] = None,
            random_state: Optional[Union[int, np.random.Generator]] = None) -> NDArray:
        """
        Random variate sampling.

        Parameters
        ----------
        size : int or tuple of ints, optional
            Number of samples. If None, a single sample is returned.
        random_state : int or numpy.random.Generator, optional
            Random state for reproducibility.

        Returns
        -------
        rvs : ndarray or scalar
            Random variates.
        """

    def mean(self) -> Union[float, NDArray[np.floating]]:
        """Mean of the distribution."""
        raise NotImplementedError("Mean not implemented for this distribution")

    def var(self) -> Union[float, NDArray[np.floating]]:
        """Variance of the distribution."""
        raise NotImplementedError("Variance not implemented for this distribution")

    def std(self) -> Union[float, NDArray[np.floating]]:
        """Standard deviation of the distribution."""
        return np.sqrt(self.var())

    def stats(self, moments: str = 'mv') -> Union[NDArray, tuple]:
        """
        Return moments of the distribution.

        Parameters
        ----------
        moments : str, optional
            Composed of letters ['mv'] defining which moments to compute:
            'm' = mean, 'v' = variance. Default is 'mv'.

        Returns
        -------
        stats : ndarray or tuple
            Requested moments.
        """
        results = []
        if 'm' in moments:
            results.append(self.mean())
        if 'v' in moments:
            results.append(self.var())

        if len(results) == 1:
            return results[0]
        return tuple(results)

    def score(self, X: ArrayLike, y: Optional[ArrayLike] = None) -> float:
        """
        Compute the mean log-likelihood (sklearn-style scoring).

        Parameters
        ----------
        X : array_like
            Data samples.
        y : array_like, optional
            Ignored. Present for sklearn API compatibility.

        Returns
        -------
        score : float
            Mean log-likelihood.
        """
        X = np.asarray(X)
        return float(np.mean(self.logpdf(X)))

    def __repr__(self) -> str:
        """String representation of the distribution."""
        return f"{self.__class__.__name__}()"
