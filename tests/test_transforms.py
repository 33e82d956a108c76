"""Tests for nodal/coefficient transforms, resizing and quadrature."""

from __future__ import annotations

import numpy as np
import pytest

from spectrafun.transforms import (
    Basis,
    as_basis,
    barycentric_weights,
    cheb2leg_values,
    coeffs2vals,
    evaluation_matrix,
    leg2cheb_values,
    legendre_points,
    legendre_weighted_operators,
    points,
    prolong,
    quadrature_weights,
    tensor_coeffs2vals,
    tensor_vals2coeffs,
    to_physical,
    to_reference,
    valid_length,
    vals2coeffs,
    wavenumbers,
)

SIZES = [1, 2, 3, 4, 8, 17, 33, 100]
BASES = [Basis.CHEBYSHEV, Basis.FOURIER]
METHODS = ["dense", "fast"]


# ======================================================================
# TestBasis
# ======================================================================

class TestBasis:
    """Tests for basis names."""

    @pytest.mark.parametrize("name,expected", [
        ("chebyshev", Basis.CHEBYSHEV),
        ("Chebyshev", Basis.CHEBYSHEV),
        ("algebraic", Basis.CHEBYSHEV),
        ("fourier", Basis.FOURIER),
        ("trigonometric", Basis.FOURIER),
        (Basis.FOURIER, Basis.FOURIER),
    ])
    def test_as_basis(self, name, expected):
        assert as_basis(name) is expected

    def test_unknown_basis_raises(self):
        with pytest.raises(ValueError, match="Unknown basis"):
            as_basis("legendre")

    def test_non_string_raises(self):
        with pytest.raises(ValueError, match="Unknown basis"):
            as_basis(3)


# ======================================================================
# TestPoints
# ======================================================================

class TestPoints:
    """Tests for reference nodes and maps."""

    def test_chebyshev_points_ascending_with_endpoints(self):
        x = points("chebyshev", 9)
        assert x[0] == -1.0 and x[-1] == 1.0
        assert np.all(np.diff(x) > 0)

    def test_chebyshev_points_match_cosine_formula(self):
        n = 12
        k = np.arange(n)
        np.testing.assert_allclose(points("chebyshev", n), -np.cos(k * np.pi / (n - 1)),
                                   atol=1e-15)

    def test_chebyshev_points_symmetric(self):
        x = points("chebyshev", 17)
        np.testing.assert_array_equal(x, -x[::-1])
        assert x[8] == 0.0

    def test_single_point(self):
        np.testing.assert_array_equal(points("chebyshev", 1), [0.0])

    def test_fourier_points(self):
        t = points("fourier", 4)
        np.testing.assert_allclose(t, [-np.pi, -np.pi / 2, 0.0, np.pi / 2])

    def test_zero_points_raises(self):
        with pytest.raises(ValueError, match=">= 1"):
            points("chebyshev", 0)

    def test_wavenumbers(self):
        np.testing.assert_array_equal(wavenumbers(5), [-2, -1, 0, 1, 2])
        np.testing.assert_array_equal(wavenumbers(4), [-2, -1, 0, 1])

    @pytest.mark.parametrize("basis", BASES)
    def test_physical_map_round_trip(self, basis):
        t = points(basis, 7)
        x = to_physical(basis, t, 2.0, 5.0)
        np.testing.assert_allclose(to_reference(basis, x, 2.0, 5.0), t, atol=1e-14)

    def test_chebyshev_physical_endpoints(self):
        x = to_physical("chebyshev", points("chebyshev", 5), -3.0, 7.0)
        assert x[0] == pytest.approx(-3.0)
        assert x[-1] == pytest.approx(7.0)

    def test_fourier_physical_start(self):
        x = to_physical("fourier", points("fourier", 6), 0.0, 1.0)
        np.testing.assert_allclose(x, np.arange(6) / 6.0, atol=1e-15)

    def test_valid_length(self):
        assert valid_length("chebyshev", 4) == 4
        assert valid_length("fourier", 4) == 7
        assert valid_length("fourier", 1) == 1
        assert valid_length("chebyshev", 0) == 1


# ======================================================================
# TestRoundTrip
# ======================================================================

class TestRoundTrip:
    """ToValues followed by ToCoeffs recovers the coefficients."""

    @pytest.mark.parametrize("basis", BASES)
    @pytest.mark.parametrize("method", METHODS)
    @pytest.mark.parametrize("n", SIZES)
    def test_coeffs_round_trip(self, basis, method, n):
        rng = np.random.default_rng(n)
        coeffs = rng.standard_normal(n)
        if basis is Basis.FOURIER:
            coeffs = coeffs + 1j * rng.standard_normal(n)
        vals = coeffs2vals(coeffs, basis, method=method)
        back = vals2coeffs(vals, basis, method=method)
        np.testing.assert_allclose(back, coeffs, atol=1e-12 * max(n, 1))

    @pytest.mark.parametrize("basis", BASES)
    @pytest.mark.parametrize("n", [2, 5, 16, 33])
    def test_dense_matches_fast(self, basis, n):
        rng = np.random.default_rng(100 + n)
        vals = rng.standard_normal((n, 3))
        dense = vals2coeffs(vals, basis, method="dense")
        fast = vals2coeffs(vals, basis, method="fast")
        np.testing.assert_allclose(dense, fast, atol=1e-13)

    @pytest.mark.parametrize("n", [3, 9, 20])
    def test_complex_chebyshev_values(self, n):
        rng = np.random.default_rng(n)
        vals = rng.standard_normal(n) + 1j * rng.standard_normal(n)
        for method in METHODS:
            back = coeffs2vals(vals2coeffs(vals, "chebyshev", method=method),
                               "chebyshev", method=method)
            np.testing.assert_allclose(back, vals, atol=1e-13)

    def test_tensor_round_trip_mixed_bases(self):
        rng = np.random.default_rng(7)
        bases = [Basis.CHEBYSHEV, Basis.FOURIER, Basis.CHEBYSHEV]
        coeffs = rng.standard_normal((5, 6, 3)) + 0j
        vals = tensor_coeffs2vals(coeffs, bases)
        np.testing.assert_allclose(tensor_vals2coeffs(vals, bases), coeffs, atol=1e-13)

    def test_tensor_transform_leaves_column_axis(self):
        vals = np.ones((4, 5, 2))
        coeffs = tensor_vals2coeffs(vals, ["chebyshev", "chebyshev"])
        assert coeffs.shape == (4, 5, 2)
        np.testing.assert_allclose(coeffs[0, 0], [1.0, 1.0])
        np.testing.assert_allclose(coeffs[1:, :], 0.0, atol=1e-14)

    def test_bad_method_raises(self):
        with pytest.raises(ValueError, match="method"):
            vals2coeffs(np.ones(4), "chebyshev", method="slow")


# ======================================================================
# TestKnownCoefficients
# ======================================================================

class TestKnownCoefficients:
    """Transforms of functions with known expansions."""

    @pytest.mark.parametrize("method", METHODS)
    def test_x_cubed(self, method):
        x = points("chebyshev", 6)
        c = vals2coeffs(x ** 3, "chebyshev", method=method)
        np.testing.assert_allclose(c, [0, 0.75, 0, 0.25, 0, 0], atol=1e-14)

    def test_chebyshev_coefficients_of_real_data_are_real(self):
        c = vals2coeffs(points("chebyshev", 9) ** 2, "chebyshev")
        assert not np.iscomplexobj(c)

    @pytest.mark.parametrize("method", METHODS)
    @pytest.mark.parametrize("n", [7, 8])
    def test_fourier_cosine(self, method, n):
        t = points("fourier", n)
        c = vals2coeffs(np.cos(t) + 0.5 * np.sin(2 * t), "fourier", method=method)
        expected = np.zeros(n, dtype=complex)
        w = wavenumbers(n)
        expected[w == 1] = 0.5
        expected[w == -1] = 0.5
        expected[w == 2] = -0.25j
        expected[w == -2] = 0.25j
        np.testing.assert_allclose(c, expected, atol=1e-14)

    def test_fourier_coefficients_are_complex(self):
        assert np.iscomplexobj(vals2coeffs(np.ones(5), "fourier"))
        assert np.iscomplexobj(vals2coeffs(np.ones(1), "fourier"))


# ======================================================================
# TestProlong
# ======================================================================

class TestProlong:
    """Tests for zero-extension and truncation."""

    def test_chebyshev_extend(self):
        out = prolong(np.array([1.0, 2.0]), "chebyshev", 4)
        np.testing.assert_array_equal(out, [1.0, 2.0, 0.0, 0.0])

    def test_chebyshev_truncate_axis(self):
        c = np.arange(12.0).reshape(3, 4)
        out = prolong(c, "chebyshev", 2, axis=1)
        np.testing.assert_array_equal(out, [[0, 1], [4, 5], [8, 9]])

    def test_same_length_is_copy(self):
        c = np.array([1.0, 2.0])
        out = prolong(c, "chebyshev", 2)
        out[0] = 5.0
        assert c[0] == 1.0

    def test_fourier_extend_odd(self):
        c = np.array([1.0, 2.0, 3.0], dtype=complex)
        out = prolong(c, "fourier", 5)
        np.testing.assert_array_equal(out, [0, 1, 2, 3, 0])

    def test_fourier_truncate_odd(self):
        c = np.arange(1.0, 8.0) + 0j
        out = prolong(c, "fourier", 3)
        np.testing.assert_array_equal(out, [3, 4, 5])

    def test_fourier_even_extension_splits_unpaired_mode(self):
        c = np.array([2.0, 1.0, 3.0, 1.0], dtype=complex)
        out = prolong(c, "fourier", 5)
        np.testing.assert_array_equal(out, [1.0, 1.0, 3.0, 1.0, 1.0])

    def test_fourier_even_extension_preserves_values(self):
        t = points("fourier", 8)
        c = vals2coeffs(np.cos(4 * t) + np.sin(t), "fourier")
        longer = prolong(c, "fourier", 17)
        t_check = np.linspace(-np.pi, np.pi, 31)
        np.testing.assert_allclose(
            evaluation_matrix("fourier", 8, t_check) @ c,
            evaluation_matrix("fourier", 17, t_check) @ longer,
            atol=1e-13,
        )

    def test_fourier_prolong_keeps_function(self):
        t = points("fourier", 15)
        c = vals2coeffs(np.exp(np.sin(t)), "fourier")
        wide = prolong(c, "fourier", 31)
        t2 = points("fourier", 31)
        np.testing.assert_allclose(coeffs2vals(wide, "fourier").real,
                                   np.exp(np.sin(t2)), atol=1e-6)

    def test_bad_length_raises(self):
        with pytest.raises(ValueError, match=">= 1"):
            prolong(np.ones(3), "chebyshev", 0)


# ======================================================================
# TestEvaluationMatrix
# ======================================================================

class TestEvaluationMatrix:
    """Tests for off-grid evaluation matrices."""

    def test_chebyshev_matches_numpy(self):
        t = np.linspace(-1, 1, 11)
        c = np.array([0.3, -1.0, 0.5, 0.25])
        expected = np.polynomial.chebyshev.chebval(t, c)
        np.testing.assert_allclose(evaluation_matrix("chebyshev", 4, t) @ c, expected)

    @pytest.mark.parametrize("n", [6, 7])
    def test_fourier_on_grid_matches_transform(self, n):
        rng = np.random.default_rng(n)
        c = rng.standard_normal(n) + 1j * rng.standard_normal(n)
        M = evaluation_matrix("fourier", n, points("fourier", n))
        np.testing.assert_allclose(M @ c, coeffs2vals(c, "fourier"), atol=1e-13)

    def test_even_fourier_real_data_stays_real(self):
        t = points("fourier", 8)
        c = vals2coeffs(np.cos(4 * t), "fourier")
        out = evaluation_matrix("fourier", 8, np.array([0.1, 0.7])) @ c
        np.testing.assert_allclose(out.imag, 0.0, atol=1e-15)
        np.testing.assert_allclose(out.real, np.cos(4 * np.array([0.1, 0.7])), atol=1e-14)


# ======================================================================
# TestQuadrature
# ======================================================================

class TestQuadrature:
    """Tests for Clenshaw-Curtis and trapezoid weights."""

    def test_simpson_for_three_points(self):
        np.testing.assert_allclose(quadrature_weights("chebyshev", 3),
                                   [1 / 3, 4 / 3, 1 / 3], atol=1e-15)

    @pytest.mark.parametrize("n", [1, 2, 5, 16, 33])
    def test_chebyshev_weights_sum_to_two(self, n):
        assert quadrature_weights("chebyshev", n).sum() == pytest.approx(2.0)

    @pytest.mark.parametrize("n", [6, 11, 20])
    def test_chebyshev_exact_for_polynomials(self, n):
        x = points("chebyshev", n)
        w = quadrature_weights("chebyshev", n)
        k = n - 1
        exact = 2.0 / (k + 1) if k % 2 == 0 else 0.0
        assert w @ x ** k == pytest.approx(exact, abs=1e-14)

    def test_chebyshev_weights_read_only(self):
        w = quadrature_weights("chebyshev", 9)
        assert not w.flags.writeable

    def test_fourier_weights(self):
        w = quadrature_weights("fourier", 8)
        np.testing.assert_allclose(w, 2 * np.pi / 8)
        t = points("fourier", 8)
        assert w @ np.cos(t) ** 2 == pytest.approx(np.pi)

    def test_barycentric_weights(self):
        np.testing.assert_array_equal(barycentric_weights("chebyshev", 4),
                                      [0.5, -1.0, 1.0, -0.5])
        np.testing.assert_array_equal(barycentric_weights("fourier", 3), [1.0, -1.0, 1.0])


# ======================================================================
# TestLegendreTransfer
# ======================================================================

class TestLegendreTransfer:
    """Tests for the weighted Chebyshev-to-Legendre operators."""

    @pytest.mark.parametrize("n", [2, 5, 12])
    def test_weighted_inner_product_is_l2(self, n):
        WP, _ = legendre_weighted_operators(n)
        x = points("chebyshev", n)
        f = WP @ x
        g = WP @ np.ones(n)
        assert f @ f == pytest.approx(2.0 / 3.0)
        assert f @ g == pytest.approx(0.0, abs=1e-14)

    @pytest.mark.parametrize("n", [3, 10])
    def test_operators_are_inverse(self, n):
        WP, inv_WP = legendre_weighted_operators(n)
        np.testing.assert_allclose(inv_WP @ WP, np.eye(n), atol=1e-12)

    def test_operators_are_cached(self):
        a = legendre_weighted_operators(6)
        b = legendre_weighted_operators(6)
        assert a[0] is b[0] and a[1] is b[1]

    def test_matrix_free_matches_dense(self):
        n = 14
        rng = np.random.default_rng(3)
        vals = rng.standard_normal((n, 2))
        WP, inv_WP = legendre_weighted_operators(n)
        np.testing.assert_allclose(cheb2leg_values(vals), WP @ vals, atol=1e-12)
        np.testing.assert_allclose(leg2cheb_values(vals), inv_WP @ vals, atol=1e-12)

    def test_matrix_free_complex(self):
        n = 8
        x = points("chebyshev", n)
        vals = (x + 1j * x ** 2)[:, None]
        back = leg2cheb_values(cheb2leg_values(vals))
        np.testing.assert_allclose(back, vals, atol=1e-12)

    @pytest.mark.parametrize("n", [500, 2000])
    def test_round_trip_at_large_n(self, n):
        WP, inv_WP = legendre_weighted_operators(n)
        x = points("chebyshev", n)
        v = np.exp(x) * np.cos(3 * x)
        np.testing.assert_allclose(inv_WP @ (WP @ v), v, atol=1e-12)

    def test_matrix_free_round_trip_at_large_n(self):
        n = 2000
        x = points("chebyshev", n)
        vals = np.stack([np.exp(x), 1.0 / (1.0 + 25.0 * x ** 2)], axis=1)
        back = leg2cheb_values(cheb2leg_values(vals))
        np.testing.assert_allclose(back, vals, atol=1e-12)


# ======================================================================
# TestGaussLegendre
# ======================================================================

class TestGaussLegendre:
    """Tests for the Gauss-Legendre nodes and weights."""

    @pytest.mark.parametrize("n", [1, 2, 7, 500])
    def test_weights_sum_to_two(self, n):
        _, w, _ = legendre_points(n)
        assert w.sum() == pytest.approx(2.0, rel=1e-14)

    @pytest.mark.parametrize("n", [3, 40, 500])
    def test_exact_for_top_degree(self, n):
        x, w, _ = legendre_points(n)
        assert np.sum(w * x ** (2 * n - 2)) == pytest.approx(2.0 / (2 * n - 1), rel=1e-12)

    @pytest.mark.parametrize("n", [6, 2000])
    def test_barycentric_weights_match_quadrature(self, n):
        x, w, v = legendre_points(n)
        signs = np.where(np.arange(n) % 2 == 0, 1.0, -1.0)
        np.testing.assert_allclose(v, signs * np.sqrt((1 - x) * (1 + x) * w), rtol=1e-13)

    def test_nodes_ascending_and_symmetric(self):
        x, _, _ = legendre_points(101)
        assert np.all(np.diff(x) > 0)
        np.testing.assert_allclose(x, -x[::-1], atol=1e-15)
        assert x[50] == pytest.approx(0.0, abs=1e-15)

    def test_points_are_cached(self, fresh_cache):
        legendre_points(9)
        assert ("legendre", "points", 9) in fresh_cache
