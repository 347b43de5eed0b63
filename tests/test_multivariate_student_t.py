"""
Tests for MultivariateStudentT construction, density and moments.

Tests that:
1. Construction validates inputs and reports non positive definite scale
   matrices as FactorizationError, never as an object
2. logpdf() matches closed forms and scipy.stats.multivariate_t
3. The Gaussian limit matches scipy.stats.multivariate_normal, and large
   finite nu converges to it
4. mean()/cov() honour destination buffers and the nu/(nu-2) factor
5. Instances are immutable and never alias caller buffers
"""

import warnings

import numpy as np
import pytest
from scipy import stats
from scipy.special import gammaln

from mvstudent import (
    FactorizationError,
    FiniteDof,
    GaussianLimit,
    MultivariateStudentT,
)


# ============================================================
# Shared test parameters
# ============================================================

def get_3d_params():
    """3D test parameters with non-trivial correlation structure."""
    return {
        'mu': np.array([0.0, 0.1, -0.1]),
        'sigma': np.array([
            [1.0, 0.3, 0.1],
            [0.3, 1.5, -0.2],
            [0.1, -0.2, 0.8],
        ]),
    }


@pytest.fixture
def dist_3d():
    p = get_3d_params()
    return MultivariateStudentT.from_classical_params(mu=p['mu'], sigma=p['sigma'], nu=5.0)


# ============================================================
# Construction
# ============================================================

class TestConstruction:
    def test_basic(self, dist_3d):
        p = get_3d_params()
        assert dist_3d.d == 3
        assert dist_3d.dim == 3
        assert dist_3d.nu == 5.0
        assert dist_3d.dof == FiniteDof(5.0)
        np.testing.assert_array_equal(dist_3d.mean(), p['mu'])
        np.testing.assert_array_equal(dist_3d.scale_matrix, p['sigma'])

    def test_build_alias(self):
        dist = MultivariateStudentT.build([0.0, 0.0], np.eye(2), 4.0)
        assert dist.d == 2

    def test_cached_factor(self, dist_3d):
        p = get_3d_params()
        L = dist_3d.L
        assert np.allclose(L, np.tril(L))
        np.testing.assert_allclose(L @ L.T, p['sigma'], rtol=1e-12)
        np.testing.assert_allclose(
            dist_3d.log_det_Sigma, np.linalg.slogdet(p['sigma'])[1], rtol=1e-12
        )
        np.testing.assert_allclose(
            dist_3d.log_sqrt_det_Sigma, 0.5 * np.linalg.slogdet(p['sigma'])[1], rtol=1e-12
        )

    def test_infinite_nu_is_gaussian_limit(self):
        dist = MultivariateStudentT([0.0], [[1.0]], np.inf)
        assert isinstance(dist.dof, GaussianLimit)
        assert dist.nu == np.inf

    def test_scalar_sigma_for_1d(self):
        dist = MultivariateStudentT([1.0], 4.0, 3.0)
        np.testing.assert_array_equal(dist.scale_matrix, [[4.0]])

    def test_vector_sigma_is_diagonal(self):
        dist = MultivariateStudentT([0.0, 0.0], [1.0, 2.0], 3.0)
        np.testing.assert_array_equal(dist.scale_matrix, np.diag([1.0, 2.0]))

    def test_classical_params(self, dist_3d):
        params = dist_3d.classical_params
        p = get_3d_params()
        np.testing.assert_array_equal(params.mu, p['mu'])
        np.testing.assert_array_equal(params['sigma'], p['sigma'])
        assert params.nu == FiniteDof(5.0)

    def test_repr(self, dist_3d):
        assert repr(dist_3d).startswith("MultivariateStudentT(")
        assert "d=3" in repr(dist_3d)
        assert "d=5" in repr(MultivariateStudentT(np.zeros(5), np.eye(5), 4.0))


class TestConstructionErrors:
    def test_empty_mu(self):
        with pytest.raises(ValueError):
            MultivariateStudentT([], np.zeros((0, 0)), 5.0)

    def test_size_mismatch(self):
        with pytest.raises(ValueError):
            MultivariateStudentT([0.0, 0.0], np.eye(3), 5.0)

    def test_asymmetric(self):
        with pytest.raises(ValueError):
            MultivariateStudentT([0.0, 0.0], [[1.0, 0.5], [0.0, 1.0]], 5.0)

    def test_non_finite(self):
        with pytest.raises(ValueError):
            MultivariateStudentT([np.nan, 0.0], np.eye(2), 5.0)
        with pytest.raises(ValueError):
            MultivariateStudentT([0.0, 0.0], [[np.inf, 0.0], [0.0, 1.0]], 5.0)

    @pytest.mark.parametrize("nu", [2.0, 1.0, -1.0, np.nan])
    def test_invalid_nu(self, nu):
        with pytest.raises(ValueError):
            MultivariateStudentT([0.0], [[1.0]], nu)

    def test_negative_diagonal_is_factorization_failure(self):
        with pytest.raises(FactorizationError):
            MultivariateStudentT([0.0, 0.0], [[-1.0, 0.0], [0.0, 1.0]], 5.0)

    def test_indefinite_is_factorization_failure(self):
        sigma = np.array([[1.0, 2.0], [2.0, 1.0]])
        with pytest.raises(FactorizationError):
            MultivariateStudentT.from_classical_params(mu=[0.0, 0.0], sigma=sigma, nu=5.0)

    def test_factorization_failure_is_not_configuration_error(self):
        try:
            MultivariateStudentT([0.0], [[-1.0]], 5.0)
        except ValueError:
            pytest.fail("Numerical failure reported as ValueError")
        except FactorizationError:
            pass

    def test_large_nu_warns(self):
        with pytest.warns(RuntimeWarning):
            dist = MultivariateStudentT([0.0], [[1.0]], 1e13)
        assert dist.nu == 1e13

    def test_moderate_nu_does_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            MultivariateStudentT([0.0], [[1.0]], 1e8)

    @pytest.mark.parametrize("build", [
        MultivariateStudentT,
        MultivariateStudentT.from_classical_params,
        MultivariateStudentT.build,
    ])
    def test_large_nu_warning_points_at_caller(self, build):
        with pytest.warns(RuntimeWarning) as record:
            build([0.0], [[1.0]], 1e13)
        assert record[0].filename == __file__

    def test_derived_large_nu_warning_points_at_caller(self):
        with pytest.warns(RuntimeWarning):
            dist = MultivariateStudentT([0.0, 0.0], np.eye(2), 1e13)
        with pytest.warns(RuntimeWarning) as record:
            dist.marginal([0])
        assert record[0].filename == __file__


class TestImmutability:
    def test_inputs_not_aliased(self):
        mu = np.array([1.0, 2.0])
        sigma = np.array([[1.0, 0.2], [0.2, 1.0]])
        dist = MultivariateStudentT(mu, sigma, 5.0)
        mu[0] = 100.0
        sigma[0, 0] = 100.0
        np.testing.assert_array_equal(dist.mean(), [1.0, 2.0])
        assert dist.scale_matrix[0, 0] == 1.0

    def test_returned_arrays_are_copies(self, dist_3d):
        m = dist_3d.mean()
        m[0] = 42.0
        s = dist_3d.scale_matrix
        s[0, 0] = 42.0
        L = dist_3d.L
        L[0, 0] = 42.0
        assert dist_3d.mean()[0] == 0.0
        assert dist_3d.scale_matrix[0, 0] == 1.0
        assert dist_3d.L[0, 0] == 1.0

    def test_internal_arrays_read_only(self, dist_3d):
        with pytest.raises(ValueError):
            dist_3d._mu[0] = 1.0
        with pytest.raises(ValueError):
            dist_3d._sigma[0, 0] = 1.0


# ============================================================
# Density
# ============================================================

class TestLogpdf:
    def test_closed_form_at_location(self):
        dist = MultivariateStudentT([0.0, 0.0], np.eye(2), 5.0)
        expected = gammaln(3.5) - gammaln(2.5) - np.log(5 * np.pi)
        np.testing.assert_allclose(dist.logpdf([0.0, 0.0]), expected, rtol=1e-14)

    def test_returns_float_for_single_point(self, dist_3d):
        assert isinstance(dist_3d.logpdf([0.0, 0.0, 0.0]), float)

    @pytest.mark.parametrize("nu", [2.5, 3.0, 5.0, 30.0])
    def test_matches_scipy(self, nu):
        p = get_3d_params()
        dist = MultivariateStudentT(p['mu'], p['sigma'], nu)
        ref = stats.multivariate_t(loc=p['mu'], shape=p['sigma'], df=nu)
        X = np.random.default_rng(1).standard_normal((20, 3)) * 2.0
        np.testing.assert_allclose(dist.logpdf(X), ref.logpdf(X), rtol=1e-10)
        for x in X[:5]:
            np.testing.assert_allclose(dist.logpdf(x), ref.logpdf(x), rtol=1e-10)

    def test_batch_matches_single(self, dist_3d):
        X = np.random.default_rng(2).standard_normal((7, 3))
        batch = dist_3d.logpdf(X)
        assert batch.shape == (7,)
        for i in range(7):
            np.testing.assert_allclose(batch[i], dist_3d.logpdf(X[i]), rtol=1e-14)

    def test_pdf_is_exp_logpdf(self, dist_3d):
        X = np.random.default_rng(3).standard_normal((10, 3))
        np.testing.assert_allclose(dist_3d.pdf(X), np.exp(dist_3d.logpdf(X)), rtol=1e-14)
        x = X[0]
        assert dist_3d.pdf(x) == pytest.approx(np.exp(dist_3d.logpdf(x)), rel=1e-14)

    def test_wrong_length(self, dist_3d):
        with pytest.raises(ValueError):
            dist_3d.logpdf([0.0, 0.0])
        with pytest.raises(ValueError):
            dist_3d.logpdf(np.zeros((4, 2)))
        with pytest.raises(ValueError):
            dist_3d.logpdf(np.zeros((2, 2, 3)))

    def test_gaussian_limit_matches_normal(self):
        p = get_3d_params()
        dist = MultivariateStudentT(p['mu'], p['sigma'], GaussianLimit())
        ref = stats.multivariate_normal(mean=p['mu'], cov=p['sigma'])
        X = np.random.default_rng(4).standard_normal((10, 3))
        np.testing.assert_allclose(dist.logpdf(X), ref.logpdf(X), rtol=1e-10)

    def test_large_nu_converges_to_normal(self):
        p = get_3d_params()
        ref = stats.multivariate_normal(mean=p['mu'], cov=p['sigma'])
        X = np.random.default_rng(5).standard_normal((10, 3))
        errors = []
        for nu in [1e2, 1e4, 1e6, 1e8]:
            dist = MultivariateStudentT(p['mu'], p['sigma'], nu)
            errors.append(np.max(np.abs(dist.logpdf(X) - ref.logpdf(X))))
        assert errors[0] > errors[-1]
        assert errors[-1] < 1e-5

    def test_far_point_stays_finite(self):
        dist = MultivariateStudentT([0.0, 0.0], np.eye(2), 5.0)
        expected = (gammaln(3.5) - gammaln(2.5) - np.log(5 * np.pi)
                    - 3.5 * (2 * np.log(1e200) - np.log(5.0)))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            result = dist.logpdf([1e200, 0.0])
            batch = dist.logpdf([[1e200, 0.0], [0.0, 0.0]])
        assert np.isfinite(result)
        np.testing.assert_allclose(result, expected, rtol=1e-12)
        np.testing.assert_allclose(batch[0], expected, rtol=1e-12)

    def test_far_point_gaussian_limit(self):
        dist = MultivariateStudentT([0.0, 0.0], np.eye(2), GaussianLimit())
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert dist.logpdf([1e200, 0.0]) == -np.inf

    def test_score(self, dist_3d):
        X = np.random.default_rng(6).standard_normal((10, 3))
        assert dist_3d.score(X) == pytest.approx(np.mean(dist_3d.logpdf(X)))


# ============================================================
# Moments
# ============================================================

class TestMoments:
    def test_cov_identity_nu_4(self):
        for n in [1, 2, 5]:
            dist = MultivariateStudentT(np.zeros(n), np.eye(n), 4.0)
            np.testing.assert_array_equal(dist.cov(), 2.0 * np.eye(n))

    def test_cov_scaling(self, dist_3d):
        p = get_3d_params()
        np.testing.assert_allclose(dist_3d.cov(), p['sigma'] * 5.0 / 3.0, rtol=1e-14)

    def test_cov_gaussian_limit(self):
        p = get_3d_params()
        dist = MultivariateStudentT(p['mu'], p['sigma'], np.inf)
        np.testing.assert_array_equal(dist.cov(), p['sigma'])

    def test_cov_out(self, dist_3d):
        out = np.empty((3, 3))
        result = dist_3d.cov(out=out)
        assert result is out
        np.testing.assert_allclose(out, dist_3d.cov())

    def test_cov_out_wrong_shape(self, dist_3d):
        with pytest.raises(ValueError):
            dist_3d.cov(out=np.empty((2, 2)))

    def test_mean_out(self, dist_3d):
        out = np.empty(3)
        result = dist_3d.mean(out=out)
        assert result is out
        np.testing.assert_array_equal(out, get_3d_params()['mu'])

    def test_mean_out_wrong_shape(self, dist_3d):
        with pytest.raises(ValueError):
            dist_3d.mean(out=np.empty(4))

    def test_var(self, dist_3d):
        np.testing.assert_allclose(dist_3d.var(), np.diag(dist_3d.cov()))
        np.testing.assert_allclose(dist_3d.std(), np.sqrt(np.diag(dist_3d.cov())))

    def test_stats(self, dist_3d):
        mean, var = dist_3d.stats('mv')
        np.testing.assert_array_equal(mean, dist_3d.mean())
        np.testing.assert_allclose(var, dist_3d.var())


# ============================================================
# Scipy compatibility
# ============================================================

class TestScipy:
    def test_round_trip(self, dist_3d):
        rv = dist_3d.to_scipy()
        dist = MultivariateStudentT.from_scipy(rv)
        np.testing.assert_allclose(dist.mean(), dist_3d.mean())
        np.testing.assert_allclose(dist.scale_matrix, dist_3d.scale_matrix)
        assert dist.nu == dist_3d.nu

    def test_gaussian_limit_to_normal(self):
        dist = MultivariateStudentT([0.0, 1.0], np.eye(2), np.inf)
        rv = dist.to_scipy()
        np.testing.assert_allclose(rv.logpdf([0.5, 0.5]), dist.logpdf([0.5, 0.5]))

    def test_gaussian_limit_round_trip(self):
        sigma = np.array([[2.0, 0.3], [0.3, 1.0]])
        dist = MultivariateStudentT([0.0, 1.0], sigma, GaussianLimit())
        back = MultivariateStudentT.from_scipy(dist.to_scipy())
        assert isinstance(back.dof, GaussianLimit)
        np.testing.assert_allclose(back.mean(), [0.0, 1.0])
        np.testing.assert_allclose(back.scale_matrix, sigma)

    def test_from_scipy_infinite_df(self):
        rv = stats.multivariate_t(loc=[0.0, 1.0], shape=np.eye(2), df=np.inf)
        dist = MultivariateStudentT.from_scipy(rv)
        assert isinstance(dist.dof, GaussianLimit)
        np.testing.assert_allclose(dist.logpdf([0.5, 0.5]), rv.logpdf([0.5, 0.5]))
