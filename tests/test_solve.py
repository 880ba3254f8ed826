import logging

import numpy as np
import pytest

from symalg import solve as la
from symalg.common import DimensionError
from symalg.expressions import sym, evaluate
from symalg.matrix import Matrix


def random_matrix(n, m, seed, density=1.0):
    rng = np.random.default_rng(seed)
    a = rng.normal(size=(n, m))
    mask = rng.random((n, m)) > density
    a[mask] = 0.0
    return Matrix.from_array(a, sparse=True)


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5])
def test_det_matches_numpy(n) -> None:
    a = random_matrix(n, n, seed=n)
    assert la.det(a) == pytest.approx(np.linalg.det(a.to_array()))


def test_det_with_empty_row_is_zero() -> None:
    a = Matrix.from_array([[1.0, 2.0, 3.0], [0.0, 0.0, 0.0], [4.0, 5.0, 6.0]], sparse=True)
    assert la.det(a) == 0.0


def test_det_of_sparse_matrix() -> None:
    a = Matrix.from_array([[2.0, 0.0, 0.0, 1.0],
                           [0.0, 3.0, 0.0, 0.0],
                           [1.0, 0.0, 4.0, 0.0],
                           [0.0, 1.0, 0.0, 5.0]], sparse=True)
    assert la.det(a) == pytest.approx(np.linalg.det(a.to_array()))


def test_det_requires_square() -> None:
    with pytest.raises(DimensionError):
        la.det(Matrix.zeros(2, 3))


def test_symbolic_det_and_inverse() -> None:
    a = Matrix.sym("a", 2, 2)
    d = la.det(a)
    values = {v: float(k + 1) for k, v in enumerate(a.data)}
    # a = [[1, 3], [2, 4]]
    assert evaluate(d, values) == pytest.approx(-2.0)
    inverse = evaluate(la.inv(a), values)
    assert np.allclose(inverse.to_array(), np.linalg.inv([[1.0, 3.0], [2.0, 4.0]]))


def test_minor_and_cofactor() -> None:
    a = Matrix.from_array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 10.0]])
    assert la.minor(a, 0, 1) == pytest.approx(4.0 * 10.0 - 6.0 * 7.0)
    assert la.cofactor(a, 0, 1) == pytest.approx(-(4.0 * 10.0 - 6.0 * 7.0))


@pytest.mark.parametrize("n", [1, 2, 3])
def test_inv_matches_numpy(n) -> None:
    a = random_matrix(n, n, seed=10 + n)
    assert np.allclose(la.inv(a).to_array(), np.linalg.inv(a.to_array()))


def test_adj_skips_zero_cofactors() -> None:
    a = Matrix.eye(3)
    assert la.adj(a).nnz == 3


@pytest.mark.parametrize("shape", [(3, 3), (5, 3), (4, 1)])
def test_qr(shape) -> None:
    a = random_matrix(*shape, seed=shape[0] * 7 + shape[1])
    q, r = la.qr(a)
    assert q.shape == shape
    assert r.shape == (shape[1], shape[1])
    assert r.is_triu()
    assert np.allclose((q @ r).to_array(), a.to_array())
    assert np.allclose((q.T @ q).to_array(), np.eye(shape[1]))


def test_qr_requires_tall() -> None:
    with pytest.raises(DimensionError):
        la.qr(Matrix.zeros(2, 3))


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 6])
@pytest.mark.parametrize("seed", [0, 1])
def test_solve_random(n, seed) -> None:
    a = random_matrix(n, n, seed=100 * n + seed)
    b = random_matrix(n, 2, seed=7 + seed)
    x = la.solve(a, b)
    assert np.allclose(x.to_array(), np.linalg.solve(a.to_array(), b.to_array()))


def test_solve_sparse_permuted_system(caplog) -> None:
    a = Matrix.from_array([[0.0, 0.0, 2.0, 0.0, 1.0],
                           [3.0, 0.0, 0.0, 0.0, 0.0],
                           [0.0, 4.0, 0.0, 1.0, 0.0],
                           [1.0, 0.0, 0.0, 0.0, 5.0],
                           [0.0, 1.0, 0.0, 6.0, 0.0]], sparse=True)
    b = Matrix.column([1.0, 2.0, 3.0, 4.0, 5.0])
    with caplog.at_level(logging.DEBUG, logger="symalg.solve"):
        x = la.solve(a, b)
    assert np.allclose(x.to_array().ravel(), np.linalg.solve(a.to_array(), b.to_array().ravel()))
    assert "block triangular form" in caplog.text


def test_solve_lower_triangular_skips_structural_zeros(caplog) -> None:
    a = Matrix.from_array([[2.0, 0.0, 0.0], [1.0, 4.0, 0.0], [0.0, 3.0, 5.0]], sparse=True)
    b = Matrix.triplet([1], [0], [8.0], 3, 1)
    with caplog.at_level(logging.DEBUG, logger="symalg.solve"):
        x = la.solve(a, b)
    assert "forward substitution" in caplog.text
    assert not x.has_nz(0, 0)
    assert np.allclose(x.to_array().ravel(), np.linalg.solve(a.to_array(), b.to_array().ravel()))


def test_solve_upper_triangular() -> None:
    a = Matrix.from_array([[2.0, 1.0, 1.0], [0.0, 4.0, 3.0], [0.0, 0.0, 5.0]], sparse=True)
    b = Matrix.column([1.0, 2.0, 3.0])
    x = la.solve(a, b)
    assert np.allclose(x.to_array().ravel(), np.linalg.solve(a.to_array(), b.to_array().ravel()))


def test_solve_drops_stored_zeros(caplog) -> None:
    a = Matrix.dense([[2.0, 0.0], [1.0, 3.0]])
    b = Matrix.column([2.0, 4.0])
    with caplog.at_level(logging.DEBUG, logger="symalg.solve"):
        x = la.solve(a, b)
    assert "removing stored zeros" in caplog.text
    assert np.allclose(x.to_array().ravel(), [1.0, 1.0])


def test_solve_permuted_triangular() -> None:
    a = Matrix.dense([[0.0, 2.0], [3.0, 1.0]]).sparsify()
    b = Matrix.column([2.0, 4.0])
    x = la.solve(a, b)
    assert np.allclose(x.to_array().ravel(), np.linalg.solve(a.to_array(), [2.0, 4.0]))


def test_solve_symbolic_lower_triangular() -> None:
    x = sym("x")
    a = Matrix.dense([[x, 0.0], [1.0, x]]).sparsify()
    b = Matrix.column([1.0, 1.0])
    sol = la.solve(a, b)
    assert np.allclose(evaluate(sol, {x: 2.0}).to_array().ravel(), [0.5, 0.25])


def test_solve_dimension_errors() -> None:
    with pytest.raises(DimensionError):
        la.solve(Matrix.zeros(2, 3), Matrix.zeros(2, 1))
    with pytest.raises(DimensionError):
        la.solve(Matrix.eye(2), Matrix.zeros(3, 1))


@pytest.mark.parametrize("shape", [(1, 3), (2, 4), (3, 5)])
def test_nullspace(shape) -> None:
    a = random_matrix(*shape, seed=sum(shape))
    n = la.nullspace(a)
    assert n.shape == (shape[1], shape[1] - shape[0])
    assert np.allclose((a @ n).to_array(), 0.0)
    assert np.allclose((n.T @ n).to_array(), np.eye(shape[1] - shape[0]))


def test_nullspace_requires_wide() -> None:
    with pytest.raises(DimensionError):
        la.nullspace(Matrix.zeros(3, 2))


@pytest.mark.parametrize("shape", [(2, 4), (4, 2), (3, 3)])
def test_pinv(shape) -> None:
    a = random_matrix(*shape, seed=3 * shape[0] + shape[1])
    assert np.allclose(la.pinv(a).to_array(), np.linalg.pinv(a.to_array()))
