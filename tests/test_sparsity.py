import numpy as np
import pytest

from symalg.common import DimensionError, InvariantViolation
from symalg.sparsity import Sparsity, FROM_A, FROM_B, FROM_BOTH


def pattern(rows):
    """Pattern of the nonzeros of a small dense 0/1 layout."""
    array = np.array(rows)
    r, c = np.nonzero(array)
    sp, _ = Sparsity.triplet(array.shape[0], array.shape[1], r.tolist(), c.tolist())
    return sp


def test_dense_and_sparse() -> None:
    sp = Sparsity.dense(2, 3)
    assert sp.colind == (0, 2, 4, 6)
    assert sp.row == (0, 1, 0, 1, 0, 1)
    assert sp.is_dense() and sp.nnz == 6 and sp.numel == 6
    empty = Sparsity.sparse(3, 2)
    assert empty.nnz == 0 and not empty.is_dense()
    assert Sparsity.sparse(0, 4).is_empty()


def test_invalid_pattern_rejected() -> None:
    with pytest.raises(InvariantViolation):
        Sparsity(2, 1, (0, 2), (1, 0))
    with pytest.raises(InvariantViolation):
        Sparsity(2, 1, (0, 1), (2,))
    with pytest.raises(InvariantViolation):
        Sparsity(2, 2, (0, 1), (0,))


def test_triplet_mapping_and_duplicates() -> None:
    sp, mapping = Sparsity.triplet(3, 3, [2, 0, 1, 2], [0, 1, 1, 0])
    assert sp.colind == (0, 1, 3, 3)
    assert sp.row == (2, 0, 1)
    assert mapping == [0, 1, 2, 0]
    with pytest.raises(DimensionError):
        Sparsity.triplet(2, 2, [2], [0])


def test_get_nz_and_negative_indices() -> None:
    sp = pattern([[1, 0], [0, 1]])
    assert sp.get_nz(0, 0) == 0
    assert sp.get_nz(1, 1) == 1
    assert sp.get_nz(0, 1) == -1
    assert sp.get_nz(-1, -1) == 1
    assert not sp.has_nz(1, 0)
    with pytest.raises(IndexError):
        sp.get_nz(2, 0)


def test_structure_queries() -> None:
    lower = pattern([[1, 0, 0], [1, 1, 0], [0, 1, 1]])
    assert lower.is_tril() and not lower.is_triu()
    assert lower.transpose()[0].is_triu()
    assert Sparsity.diag(3).is_diagonal()
    assert Sparsity.diag(3).is_symmetric()
    assert not lower.is_symmetric()
    assert Sparsity.lower(3) == lower.pattern_union(Sparsity.lower(3))[0]
    assert Sparsity.upper(2).row == (0, 0, 1)
    assert Sparsity.scalar().is_scalar()
    assert Sparsity.dense(1, 4).is_vector()


def test_transpose_mapping() -> None:
    sp = pattern([[1, 1, 0], [0, 1, 1]])
    t, mapping = sp.transpose()
    assert t.shape == (3, 2)
    rows, cols = sp.get_triplet()
    t_rows, t_cols = t.get_triplet()
    for k, src in enumerate(mapping):
        assert (t_rows[k], t_cols[k]) == (cols[src], rows[src])


def test_union_and_intersection() -> None:
    a = pattern([[1, 0], [1, 0]])
    b = pattern([[1, 1], [0, 0]])
    union, tags = a.pattern_union(b)
    assert union == pattern([[1, 1], [1, 0]])
    assert tags == [FROM_BOTH, FROM_A, FROM_B]
    assert a.pattern_intersection(b) == pattern([[1, 0], [0, 0]])
    with pytest.raises(DimensionError):
        a.pattern_union(Sparsity.dense(3, 2))


def test_reshape_keeps_order() -> None:
    sp = pattern([[1, 0, 1], [0, 1, 0]])
    r = sp.reshape(3, 2)
    assert r.shape == (3, 2)
    assert r.nnz == sp.nnz
    assert r.get_triplet() == ([0, 0, 1], [0, 1, 1])
    with pytest.raises(DimensionError):
        sp.reshape(4, 2)


def test_get_diag() -> None:
    sp = pattern([[1, 1, 0], [0, 0, 0], [0, 1, 1]])
    d, mapping = sp.get_diag()
    assert d.shape == (3, 1)
    assert d.row == (0, 2)
    assert mapping == [0, 3]
    v = pattern([[1], [0], [1]])
    m, mapping = v.get_diag()
    assert m == pattern([[1, 0, 0], [0, 0, 0], [0, 0, 1]])
    assert mapping == [0, 1]
    with pytest.raises(DimensionError):
        Sparsity.dense(2, 3).get_diag()


def test_sub_with_repeats() -> None:
    sp = pattern([[1, 0], [1, 1]])
    s, mapping = sp.sub([1, 1, 0], [1, 0])
    assert s == pattern([[1, 1], [1, 1], [0, 1]])
    rows, cols = sp.get_triplet()
    s_rows, s_cols = s.get_triplet()
    picked_rows = [1, 1, 0]
    picked_cols = [1, 0]
    for k, src in enumerate(mapping):
        assert (rows[src], cols[src]) == (picked_rows[s_rows[k]], picked_cols[s_cols[k]])


def test_horzcat_and_blkdiag() -> None:
    a = pattern([[1], [0]])
    b = pattern([[0, 1], [1, 0]])
    assert Sparsity.horzcat([a, b]) == pattern([[1, 0, 1], [0, 1, 0]])
    assert Sparsity.horzcat([Sparsity.sparse(0, 0), a]) == a
    with pytest.raises(DimensionError):
        Sparsity.horzcat([a, Sparsity.dense(3, 1)])
    assert Sparsity.blkdiag([a, b]) == pattern([[1, 0, 0], [0, 0, 0], [0, 0, 1], [0, 1, 0]])


def test_rank() -> None:
    assert Sparsity.dense(3, 3).rank() == 3
    assert pattern([[1, 1, 1], [1, 0, 0], [1, 0, 0]]).rank() == 2
    assert Sparsity.sparse(2, 2).rank() == 0


@pytest.mark.parametrize("layout", [
    [[0, 1, 0], [1, 0, 0], [0, 0, 1]],
    [[1, 1, 0, 0], [1, 1, 0, 0], [0, 1, 1, 0], [1, 0, 1, 1]],
    [[0, 0, 1, 1], [1, 1, 0, 0], [1, 0, 0, 0], [0, 0, 1, 0]],
    [[1, 0, 0, 1, 0], [0, 1, 1, 0, 0], [0, 1, 1, 0, 0], [1, 0, 0, 1, 1], [0, 0, 0, 0, 1]],
])
def test_btf_gives_block_lower_triangular(layout) -> None:
    sp = pattern(layout)
    rowperm, colperm, rowblock, colblock = sp.btf()
    n = sp.nrow
    assert sorted(rowperm) == list(range(n))
    assert sorted(colperm) == list(range(n))
    assert rowblock == colblock
    assert rowblock[0] == 0 and rowblock[-1] == n
    permuted, _ = sp.sub(rowperm, colperm)
    block_of = {}
    for b in range(len(rowblock) - 1):
        for k in range(rowblock[b], rowblock[b+1]):
            block_of[k] = b
    rows, cols = permuted.get_triplet()
    for r, c in zip(rows, cols):
        assert block_of[c] <= block_of[r]
    for k in range(n):
        assert permuted.has_nz(k, k)


def test_btf_of_triangular_has_unit_blocks() -> None:
    sp = Sparsity.lower(4)
    rowperm, colperm, rowblock, _ = sp.btf()
    assert len(rowblock) == 5


def test_to_csc() -> None:
    sp = pattern([[1, 0], [1, 1]])
    m = sp.to_csc()
    assert m.shape == (2, 2)
    assert m.nnz == 3
    assert (m.toarray() != 0).tolist() == [[True, False], [True, True]]
