"""Linear algebra utilities for mvstudent.

Provides a strict Cholesky factorization wrapper and the index helpers used
to partition a scale matrix into blocks.

Unlike a regularizing factorization, :class:`Cholesky` never perturbs its
input: a matrix that LAPACK cannot factor is reported through
:class:`~mvstudent.exceptions.FactorizationError`.
"""

import numbers
from typing import Sequence, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.linalg import LinAlgError, cho_solve, cholesky, solve_triangular

from mvstudent.exceptions import FactorizationError


class Cholesky:
    r"""
    Lower Cholesky factorization :math:`A = L L^T` of a symmetric matrix.

    Use :meth:`factorize` to construct. Only the lower triangle of the input
    is read by LAPACK's ``dpotrf``, so symmetry is the caller's concern.

    Examples
    --------
    >>> import numpy as np
    >>> chol = Cholesky.factorize(np.array([[4.0, 2.0], [2.0, 3.0]]))
    >>> np.allclose(chol.lower @ chol.lower.T, [[4.0, 2.0], [2.0, 3.0]])
    True
    >>> chol.solve_vec(np.array([4.0, 2.0]))
    array([1., 0.])
    """

    __slots__ = ('_L',)

    def __init__(self, L: NDArray):
        self._L = L

    @classmethod
    def factorize(cls, a: ArrayLike) -> 'Cholesky':
        """
        Factorize a symmetric positive definite matrix.

        Parameters
        ----------
        a : array_like, shape (d, d)
            Matrix to decompose.

        Returns
        -------
        chol : Cholesky

        Raises
        ------
        ValueError
            If ``a`` is not a square 2-D matrix.
        FactorizationError
            If ``a`` is not positive definite to working precision.
        """
        a = np.asarray(a, dtype=float)
        if a.ndim != 2 or a.shape[0] != a.shape[1]:
            raise ValueError(f"Expected a square matrix, got shape {a.shape}")
        try:
            L = cholesky(a, lower=True)
        except LinAlgError as exc:
            raise FactorizationError(
                f"Matrix of dimension {a.shape[0]} is not positive definite: {exc}"
            ) from exc
        L.setflags(write=False)
        return cls(L)

    @property
    def dim(self) -> int:
        return self._L.shape[0]

    @property
    def lower(self) -> NDArray:
        """The lower triangular factor :math:`L` (read-only)."""
        return self._L

    def log_det(self) -> float:
        r"""
        Log-determinant of the factored matrix.

        .. math::
            \log|A| = 2 \sum_{i=1}^d \log L_{ii}
        """
        return float(2.0 * np.sum(np.log(np.diag(self._L))))

    def solve_vec(self, b: ArrayLike) -> NDArray:
        """Solve :math:`A x = b` for a vector right-hand side."""
        b = np.asarray(b, dtype=float)
        if b.shape != (self.dim,):
            raise ValueError(f"Expected vector of length {self.dim}, got shape {b.shape}")
        return cho_solve((self._L, True), b)

    def solve(self, B: ArrayLike) -> NDArray:
        """Solve :math:`A X = B` for a matrix right-hand side."""
        B = np.asarray(B, dtype=float)
        if B.ndim != 2 or B.shape[0] != self.dim:
            raise ValueError(
                f"Expected matrix with {self.dim} rows, got shape {B.shape}"
            )
        return cho_solve((self._L, True), B)

    def whiten(self, x: ArrayLike, mu: ArrayLike) -> NDArray:
        """
        Whitened residual :math:`L^{-1}(x-\\mu)`.

        Returns shape ``(d,)`` for a single point and ``(d, n)`` for
        ``(n, d)`` input.
        """
        diff = np.asarray(x, dtype=float) - mu
        return solve_triangular(self._L, diff.T, lower=True)

    def mahalanobis_sq(self, x: ArrayLike, mu: ArrayLike) -> Union[float, NDArray]:
        r"""
        Squared Mahalanobis distance :math:`(x-\mu)^T A^{-1} (x-\mu)`.

        Computed as :math:`\|L^{-1}(x-\mu)\|^2` with a triangular solve.
        Overflows to ``inf`` for residuals beyond about ``1e154``; use
        :meth:`mahalanobis` there.

        Parameters
        ----------
        x : array_like
            Shape ``(d,)`` for a single point, ``(n, d)`` for n points.
        mu : array_like, shape (d,)

        Returns
        -------
        m2 : float or ndarray of shape ``(n,)``
        """
        Z = self.whiten(x, mu)
        m2 = np.sum(Z ** 2, axis=0)
        if Z.ndim == 1:
            return float(m2)
        return m2

    def mahalanobis(self, x: ArrayLike, mu: ArrayLike) -> Union[float, NDArray]:
        """
        Mahalanobis distance, the square root of :meth:`mahalanobis_sq`.

        The whitened residual is divided by its largest entry before
        squaring, so the result stays finite whenever it is representable.
        """
        Z = self.whiten(x, mu)
        scale = np.max(np.abs(Z), axis=0)
        safe = np.where((scale > 0) & np.isfinite(scale), scale, 1.0)
        m = scale * np.sqrt(np.sum((Z / safe) ** 2, axis=0))
        m = np.where(np.isinf(scale), np.inf, m)
        if Z.ndim == 1:
            return float(m)
        return m


def validate_indices(indices: Sequence[int], dim: int) -> NDArray:
    """
    Validate a list of coordinate indices.

    Parameters
    ----------
    indices : sequence of int
        Coordinate indices. Must be non-empty, unique and in ``[0, dim)``.
    dim : int
        Dimension of the distribution.

    Returns
    -------
    idx : ndarray of int
        The indices in their original order.

    Raises
    ------
    ValueError
        If ``indices`` is empty, not one-dimensional, non-integer or has
        duplicates.
    IndexError
        If an index is outside ``[0, dim)``.
    """
    idx = np.asarray(indices)
    if idx.ndim != 1:
        raise ValueError(f"Indices must be one-dimensional, got shape {idx.shape}")
    if idx.size == 0:
        raise ValueError("Indices must not be empty")
    if not all(isinstance(i, numbers.Integral) and not isinstance(i, bool)
               for i in idx.tolist()):
        raise ValueError(f"Indices must be integers, got {list(indices)!r}")
    idx = idx.astype(np.intp)
    for i in idx:
        if i < 0 or i >= dim:
            raise IndexError(f"Index {i} out of bounds for dimension {dim}")
    if np.unique(idx).size != idx.size:
        raise ValueError(f"Indices must be unique, got {idx.tolist()}")
    return idx


def complement_indices(observed: Sequence[int], dim: int) -> NDArray:
    """
    Indices of ``range(dim)`` not present in ``observed``, in ascending order.

    ``observed`` is validated with :func:`validate_indices`.

    Examples
    --------
    >>> complement_indices([3, 1], 5)
    array([0, 2, 4])
    """
    observed = validate_indices(observed, dim)
    return np.setdiff1d(np.arange(dim, dtype=np.intp), observed)


def subset_sym(a: NDArray, indices: Sequence[int]) -> NDArray:
    """
    Square sub-matrix ``a[indices][:, indices]`` in the order of ``indices``.

    Returns a new array; ``a`` is not modified.
    """
    idx = np.asarray(indices, dtype=np.intp)
    return a[np.ix_(idx, idx)]
