import numpy as np
import pytest

from symalg.common import DimensionError, InvariantViolation
from symalg.expressions import Scalar, sym, sin, cos, exp, fmod, evaluate, zero
from symalg.matrix import Matrix
from symalg.nodes import Op
from symalg.sparsity import Sparsity


def test_data_length_invariant() -> None:
    with pytest.raises(InvariantViolation):
        Matrix(Sparsity.dense(2, 2), [1.0, 2.0])


def test_constructors() -> None:
    assert Matrix.zeros(2, 3).shape == (2, 3)
    assert Matrix.zeros(2, 3).is_dense()
    assert Matrix.sparse(2, 3).nnz == 0
    assert Matrix.eye(3).to_array().tolist() == np.eye(3).tolist()
    assert Matrix.ones(2).to_array().tolist() == [[1.0], [1.0]]
    m = Matrix.dense([[1, 2], [3, 4]])
    assert m.data == [1, 3, 2, 4]
    assert Matrix.dense([5, 6]).shape == (2, 1)
    assert Matrix.scalar(2.5).to_scalar() == 2.5
    with pytest.raises(DimensionError):
        Matrix.dense([[1, 2], [3]])


def test_triplet_and_from_array() -> None:
    m = Matrix.triplet([0, 2], [1, 0], [5.0, 7.0], 3, 2)
    assert m.nnz == 2
    assert m[0, 1] == 5.0 and m[2, 0] == 7.0
    assert m[1, 1] == 0.0
    a = np.array([[1.0, 0.0], [0.0, 2.0]])
    assert Matrix.from_array(a).nnz == 4
    s = Matrix.from_array(a, sparse=True)
    assert s.nnz == 2
    assert s.to_array().tolist() == a.tolist()


def test_sym() -> None:
    a = Matrix.sym("a", 2, 2)
    assert a.is_dense()
    assert [v.name for v in a.data] == ["a_0", "a_1", "a_2", "a_3"]
    assert Matrix.sym("x").to_scalar().name == "x"


def test_element_access() -> None:
    m = Matrix.dense([[1.0, 2.0], [3.0, 4.0]])
    assert m[1, 0] == 3.0
    assert m[-1, -1] == 4.0
    with pytest.raises(IndexError):
        m[2, 0]
    col = Matrix.column([1.0, 2.0, 3.0])
    assert col[2] == 3.0
    assert m.has_nz(0, 1)


def test_submatrix_access() -> None:
    m = Matrix.from_array(np.arange(12.0).reshape(3, 4))
    s = m[1:, ::2]
    assert s.to_array().tolist() == [[4.0, 6.0], [8.0, 10.0]]
    t = m[[2, 0], 1]
    assert t.to_array().tolist() == [[9.0], [1.0]]
    assert m[:, -1].to_array().ravel().tolist() == [3.0, 7.0, 11.0]


def test_element_assignment_inserts_nonzeros() -> None:
    m = Matrix.sparse(2, 2)
    m[1, 0] = 3.0
    m[0, 1] = 4.0
    assert m.nnz == 2
    assert m.to_array().tolist() == [[0.0, 4.0], [3.0, 0.0]]
    m[1, 0] = 5.0
    assert m.nnz == 2 and m[1, 0] == 5.0


def test_block_assignment() -> None:
    m = Matrix.zeros(3, 3)
    m[0:2, 1:3] = Matrix.dense([[1.0, 2.0], [3.0, 4.0]])
    assert m.to_array().tolist() == [[0.0, 1.0, 2.0], [0.0, 3.0, 4.0], [0.0, 0.0, 0.0]]
    m[2, :] = 9.0
    assert m.to_array()[2].tolist() == [9.0, 9.0, 9.0]
    with pytest.raises(DimensionError):
        m[0:2, 0:2] = Matrix.zeros(3, 3)


def test_copies_do_not_alias() -> None:
    m = Matrix.dense([[1.0, 2.0]])
    c = m.copy()
    c[0, 0] = 7.0
    assert m[0, 0] == 1.0


def test_transpose() -> None:
    m = Matrix.triplet([0, 1], [2, 0], [1.0, 2.0], 2, 3)
    t = m.T
    assert t.shape == (3, 2)
    assert t.to_array().tolist() == m.to_array().T.tolist()


def test_sparsify_and_densify() -> None:
    m = Matrix.dense([[1.0, 0.0], [1e-12, 2.0]])
    assert m.has_nonstructural_zeros()
    assert m.sparsify().nnz == 3
    assert m.sparsify(1e-9).nnz == 2
    d = Matrix.eye(2).densify()
    assert d.is_dense() and d.to_array().tolist() == [[1.0, 0.0], [0.0, 1.0]]


def test_addition_uses_union() -> None:
    a = Matrix.triplet([0], [0], [1.0], 2, 2)
    b = Matrix.triplet([1], [1], [2.0], 2, 2)
    c = a + b
    assert c.nnz == 2
    assert c.to_array().tolist() == [[1.0, 0.0], [0.0, 2.0]]
    d = a - b
    assert d.to_array().tolist() == [[1.0, 0.0], [0.0, -2.0]]


def test_product_uses_intersection() -> None:
    a = Matrix.triplet([0, 1], [0, 1], [3.0, 4.0], 2, 2)
    b = Matrix.triplet([0], [0], [2.0], 2, 2)
    c = a * b
    assert c.nnz == 1
    assert c[0, 0] == 6.0


def test_division_keeps_numerator_pattern() -> None:
    a = Matrix.eye(2) * 6.0
    b = Matrix.ones(2, 2) * 2.0
    c = a / b
    assert c.sparsity == a.sparsity
    assert c.to_array().tolist() == [[3.0, 0.0], [0.0, 3.0]]


def test_scalar_broadcast() -> None:
    m = Matrix.eye(2)
    assert (2.0 * m).sparsity == m.sparsity
    assert (m + 1.0).is_dense()
    assert (1.0 - m).to_array().tolist() == [[0.0, 1.0], [1.0, 0.0]]
    assert (m + Matrix.scalar(1.0)).is_dense()
    assert (Matrix.scalar(2.0) * m).to_array().tolist() == [[2.0, 0.0], [0.0, 2.0]]
    with pytest.raises(DimensionError):
        Matrix.eye(2) + Matrix.eye(3)


def test_elementwise_functions() -> None:
    m = Matrix.eye(2)
    assert sin(m).sparsity == m.sparsity
    c = cos(m)
    assert c.is_dense()
    assert c[0, 1] == 1.0
    assert (-m)[0, 0] == -1.0


def test_matrix_product_only_reachable_entries() -> None:
    a = Matrix.triplet([0, 1], [0, 0], [1.0, 2.0], 2, 2)
    b = Matrix.triplet([0], [1], [3.0], 2, 2)
    c = a @ b
    assert c.nnz == 2
    assert c.to_array().tolist() == (a.to_array() @ b.to_array()).tolist()
    assert (b @ b).nnz == 0
    with pytest.raises(DimensionError):
        Matrix.zeros(2, 3) @ Matrix.zeros(2, 3)


def test_symbolic_entries() -> None:
    x = sym("x")
    m = Matrix.dense([[x, 0.0], [1.0, x]])
    p = m @ m
    assert p[0, 0].is_op(Op.SQ)
    values = evaluate(p, {x: 3.0})
    assert values.to_array().tolist() == [[9.0, 0.0], [6.0, 9.0]]
    z = (m - m)
    assert z[0, 0].node is zero.node
    e = exp(m)
    assert e.is_dense()


def test_append_columns() -> None:
    m = Matrix.dense([[1.0], [2.0]])
    m.append_columns(Matrix.dense([[3.0], [4.0]]))
    assert m.to_array().tolist() == [[1.0, 3.0], [2.0, 4.0]]


def test_to_scalar_requires_one_by_one() -> None:
    with pytest.raises(DimensionError):
        Matrix.zeros(2, 1).to_scalar()
    assert Matrix.sparse(1, 1).to_scalar() == 0.0
    assert float(Matrix.scalar(Scalar(2.5))) == 2.5


def test_str_marks_structural_zeros() -> None:
    assert str(Matrix.eye(2)) == "Matrix(2x2: [[1.0, 00], [00, 1.0]])"


def test_fmod_sees_structural_zeros() -> None:
    a = Matrix.triplet([0], [0], [1.0], 2, 2)
    r = fmod(a, a)
    assert r.is_dense()
    assert r[0, 0] == 0.0
    assert np.isnan(r.to_array()[1, 1])
    assert (Matrix.eye(2) + Matrix.eye(2)).sparsity == Matrix.eye(2).sparsity
