from bisect import bisect_left
from dataclasses import dataclass
from typing import List, Tuple, Sequence
from scipy.sparse import csc_matrix, csr_matrix
from scipy.sparse.csgraph import connected_components, maximum_bipartite_matching, structural_rank
from .common import DimensionError, InvariantViolation, dim_string
import numpy as np
import heapq

# Tags of a pattern union entry.
FROM_A    = 1
FROM_B    = 2
FROM_BOTH = 3

def lockstep(xs, ys):
    """Merge two sorted index sequences, tagging where each entry came from."""
    i = 0
    j = 0
    while i < len(xs) and j < len(ys):
        if xs[i] < ys[j]:
            yield xs[i], FROM_A
            i += 1
        elif ys[j] < xs[i]:
            yield ys[j], FROM_B
            j += 1
        else:
            yield xs[i], FROM_BOTH
            i += 1
            j += 1
    for x in xs[i:]:
        yield x, FROM_A
    for y in ys[j:]:
        yield y, FROM_B

@dataclass(eq=True, frozen=True)
class Sparsity:
    """Compressed column storage pattern of a matrix.

    `colind` has `ncol+1` entries, column `c` owns the nonzeros
    `colind[c]:colind[c+1]`, and `row` lists their (sorted, unique) row
    indices. Instances are immutable and compare by value.
    """
    nrow   : int
    ncol   : int
    colind : Tuple[int, ...]
    row    : Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "colind", tuple(int(c) for c in self.colind))
        object.__setattr__(self, "row", tuple(int(r) for r in self.row))
        if self.nrow < 0 or self.ncol < 0:
            raise InvariantViolation(f"negative dimension {dim_string(self.nrow, self.ncol)}")
        if len(self.colind) != self.ncol + 1 or self.colind[0] != 0:
            raise InvariantViolation("colind must start at 0 and have ncol+1 entries")
        if self.colind[-1] != len(self.row):
            raise InvariantViolation("colind does not match the number of row indices")
        for c in range(self.ncol):
            start, stop = self.colind[c], self.colind[c+1]
            if stop < start:
                raise InvariantViolation("colind is not monotone")
            prev = -1
            for r in self.row[start:stop]:
                if r <= prev or r >= self.nrow:
                    raise InvariantViolation(f"bad row index {r} in column {c}")
                prev = r

    # Construction

    @classmethod
    def dense(cls, nrow, ncol=1):
        colind = [c * nrow for c in range(ncol + 1)]
        return cls(nrow, ncol, colind, list(range(nrow)) * ncol)

    @classmethod
    def sparse(cls, nrow, ncol=1):
        return cls(nrow, ncol, [0] * (ncol + 1), [])

    @classmethod
    def scalar(cls, dense=True):
        return cls.dense(1, 1) if dense else cls.sparse(1, 1)

    @classmethod
    def diag(cls, n):
        return cls(n, n, list(range(n + 1)), list(range(n)))

    @classmethod
    def lower(cls, n):
        rows = []
        colind = [0]
        for c in range(n):
            rows.extend(range(c, n))
            colind.append(len(rows))
        return cls(n, n, colind, rows)

    @classmethod
    def upper(cls, n):
        rows = []
        colind = [0]
        for c in range(n):
            rows.extend(range(c + 1))
            colind.append(len(rows))
        return cls(n, n, colind, rows)

    @classmethod
    def triplet(cls, nrow, ncol, rows, cols):
        """Pattern holding the given (row, col) pairs.

        Returns the pattern and, for every input pair, the index of the
        nonzero it landed on. Duplicated pairs share one nonzero.
        """
        if len(rows) != len(cols):
            raise DimensionError("triplet: row and column lists differ in length")
        for r, c in zip(rows, cols):
            if not (0 <= r < nrow and 0 <= c < ncol):
                raise DimensionError(f"triplet: ({r}, {c}) out of bounds for {dim_string(nrow, ncol)}")
        order = sorted(set(zip(cols, rows)))
        position = {rc: k for k, rc in enumerate(order)}
        colind = [0] * (ncol + 1)
        for c, _ in order:
            colind[c + 1] += 1
        for c in range(ncol):
            colind[c + 1] += colind[c]
        sp = cls(nrow, ncol, colind, [r for _, r in order])
        return sp, [position[(c, r)] for r, c in zip(rows, cols)]

    @classmethod
    def horzcat(cls, patterns):
        patterns = [sp for sp in patterns if sp.shape != (0, 0)]
        if not patterns:
            return cls.sparse(0, 0)
        nrow = patterns[0].nrow
        colind = [0]
        rows = []
        for sp in patterns:
            if sp.nrow != nrow:
                raise DimensionError(
                    f"horzcat: row count mismatch, {dim_string(sp.nrow, sp.ncol)} after {nrow} rows")
            offset = len(rows)
            colind.extend(offset + c for c in sp.colind[1:])
            rows.extend(sp.row)
        return cls(nrow, len(colind) - 1, colind, rows)

    @classmethod
    def blkdiag(cls, patterns):
        nrow = 0
        colind = [0]
        rows = []
        for sp in patterns:
            offset = len(rows)
            colind.extend(offset + c for c in sp.colind[1:])
            rows.extend(nrow + r for r in sp.row)
            nrow += sp.nrow
        return cls(nrow, len(colind) - 1, colind, rows)

    # Queries

    @property
    def nnz(self):
        return len(self.row)

    @property
    def shape(self):
        return self.nrow, self.ncol

    @property
    def numel(self):
        return self.nrow * self.ncol

    def dim_string(self):
        return dim_string(self.nrow, self.ncol)

    def is_dense(self):
        return self.nnz == self.numel

    def is_empty(self):
        return self.numel == 0

    def is_scalar(self):
        return self.nrow == 1 and self.ncol == 1

    def is_column(self):
        return self.ncol == 1

    def is_vector(self):
        return self.ncol == 1 or self.nrow == 1

    def is_square(self):
        return self.nrow == self.ncol

    def is_tril(self):
        return all(r >= c for r, c in zip(self.row, self.get_col()))

    def is_triu(self):
        return all(r <= c for r, c in zip(self.row, self.get_col()))

    def is_diagonal(self):
        return self.is_square() and all(r == c for r, c in zip(self.row, self.get_col()))

    def is_symmetric(self):
        return self.is_square() and self.transpose()[0] == self

    def get_col(self):
        cols = []
        for c in range(self.ncol):
            cols.extend([c] * (self.colind[c+1] - self.colind[c]))
        return cols

    def get_triplet(self):
        return list(self.row), self.get_col()

    def col_rows(self, c):
        return self.row[self.colind[c]:self.colind[c+1]]

    def get_nz(self, r, c):
        if r < 0:
            r += self.nrow
        if c < 0:
            c += self.ncol
        if not (0 <= r < self.nrow and 0 <= c < self.ncol):
            raise IndexError(f"({r}, {c}) out of bounds for {self.dim_string()}")
        start, stop = self.colind[c], self.colind[c+1]
        k = bisect_left(self.row, r, start, stop)
        if k < stop and self.row[k] == r:
            return k
        return -1

    def has_nz(self, r, c):
        return self.get_nz(r, c) >= 0

    def row_counts(self):
        counts = [0] * self.nrow
        for r in self.row:
            counts[r] += 1
        return counts

    def col_counts(self):
        return [self.colind[c+1] - self.colind[c] for c in range(self.ncol)]

    # Pattern algebra

    def transpose(self):
        """Transposed pattern and, per new nonzero, the old nonzero index."""
        counts = [0] * (self.nrow + 1)
        for r in self.row:
            counts[r + 1] += 1
        for r in range(self.nrow):
            counts[r + 1] += counts[r]
        colind = list(counts)
        rows = [0] * self.nnz
        mapping = [0] * self.nnz
        cols = self.get_col()
        for k, (r, c) in enumerate(zip(self.row, cols)):
            dst = counts[r]
            counts[r] += 1
            rows[dst] = c
            mapping[dst] = k
        return Sparsity(self.ncol, self.nrow, colind, rows), mapping

    def pattern_union(self, other):
        """Union of two patterns, with a FROM_* tag per resulting nonzero."""
        if self.shape != other.shape:
            raise DimensionError(
                f"pattern union: {self.dim_string()} and {other.dim_string()} differ")
        colind = [0]
        rows = []
        tags = []
        for c in range(self.ncol):
            for r, tag in lockstep(self.col_rows(c), other.col_rows(c)):
                rows.append(r)
                tags.append(tag)
            colind.append(len(rows))
        return Sparsity(self.nrow, self.ncol, colind, rows), tags

    def pattern_intersection(self, other):
        if self.shape != other.shape:
            raise DimensionError(
                f"pattern intersection: {self.dim_string()} and {other.dim_string()} differ")
        colind = [0]
        rows = []
        for c in range(self.ncol):
            for r, tag in lockstep(self.col_rows(c), other.col_rows(c)):
                if tag == FROM_BOTH:
                    rows.append(r)
            colind.append(len(rows))
        return Sparsity(self.nrow, self.ncol, colind, rows)

    def reshape(self, nrow, ncol):
        if nrow * ncol != self.numel:
            raise DimensionError(
                f"reshape: cannot reshape {self.dim_string()} into {dim_string(nrow, ncol)}")
        colind = [0] * (ncol + 1)
        rows = []
        for r, c in zip(self.row, self.get_col()):
            new_c, new_r = divmod(c * self.nrow + r, nrow)
            colind[new_c + 1] += 1
            rows.append(new_r)
        for c in range(ncol):
            colind[c + 1] += colind[c]
        return Sparsity(nrow, ncol, colind, rows)

    def get_diag(self):
        """Diagonal of a square pattern as a column, or a vector spread on a diagonal.

        Returns the new pattern and the index of the source nonzero for
        each of its nonzeros.
        """
        if self.is_square() and not self.is_scalar():
            rows = []
            mapping = []
            for c in range(self.ncol):
                k = self.get_nz(c, c)
                if k >= 0:
                    rows.append(c)
                    mapping.append(k)
            return Sparsity(self.nrow, 1, [0, len(rows)], rows), mapping
        elif self.is_vector():
            n = max(self.nrow, self.ncol)
            if self.is_column():
                positions = list(self.row)
            else:
                positions = self.get_col()
            colind = [0] * (n + 1)
            for p in positions:
                colind[p + 1] = 1
            for c in range(n):
                colind[c + 1] += colind[c]
            return Sparsity(n, n, colind, positions), list(range(self.nnz))
        raise DimensionError(f"diag: expected a square matrix or a vector, got {self.dim_string()}")

    def sub(self, rows: Sequence[int], cols: Sequence[int]):
        """Pattern of the submatrix picking `rows` and `cols` in the given order.

        Indices may repeat. Returns the pattern and the source nonzero for
        each of its nonzeros.
        """
        where = {}
        for i, r in enumerate(rows):
            where.setdefault(r, []).append(i)
        colind = [0]
        new_rows = []
        mapping = []
        for c in cols:
            entries = []
            for k in range(self.colind[c], self.colind[c+1]):
                for i in where.get(self.row[k], ()):
                    entries.append((i, k))
            entries.sort()
            new_rows.extend(i for i, _ in entries)
            mapping.extend(k for _, k in entries)
            colind.append(len(new_rows))
        return Sparsity(len(rows), len(cols), colind, new_rows), mapping

    # Graph algorithms

    def to_csc(self):
        data = np.ones(self.nnz, dtype=np.int8)
        return csc_matrix((data, np.array(self.row, dtype=np.int64),
                           np.array(self.colind, dtype=np.int64)), shape=self.shape)

    def rank(self):
        """Structural rank: size of a maximum matching of rows and columns."""
        if self.nnz == 0:
            return 0
        return int(structural_rank(self.to_csc().tocsr()))

    def btf(self):
        """Block triangular form of a square pattern.

        Returns `(rowperm, colperm, rowblock, colblock)`. Picking rows
        `rowperm` and columns `colperm` gives a block lower triangular
        pattern with a structurally nonzero diagonal whenever the pattern
        has full structural rank; block `b` spans the permuted indices
        `rowblock[b]:rowblock[b+1]`.
        """
        if not self.is_square():
            raise DimensionError(f"btf: expected a square pattern, got {self.dim_string()}")
        n = self.nrow
        if n == 0:
            return [], [], [0], [0]
        csr = self.to_csc().tocsr()
        col_of_row = maximum_bipartite_matching(csr, perm_type='column').tolist()
        taken = set(c for c in col_of_row if c >= 0)
        spare = iter(c for c in range(n) if c not in taken)
        col_of_row = [c if c >= 0 else next(spare) for c in col_of_row]
        row_of_col = [0] * n
        for r, c in enumerate(col_of_row):
            row_of_col[c] = r

        # Row r depends on row s when r touches the column matched to s.
        src = []
        dst = []
        for r, c in zip(self.row, self.get_col()):
            s = row_of_col[c]
            if s != r:
                src.append(r)
                dst.append(s)
        edges = (np.array(src, dtype=np.int64), np.array(dst, dtype=np.int64))
        graph = csr_matrix((np.ones(len(src), dtype=np.int8), edges), shape=(n, n))
        nblock, labels = connected_components(graph, directed=True, connection='strong')
        labels = labels.tolist()

        # Order the blocks so that every block comes after the blocks it depends on.
        pending = [set() for _ in range(nblock)]
        users = [set() for _ in range(nblock)]
        for r, s in zip(src, dst):
            if labels[r] != labels[s]:
                pending[labels[r]].add(labels[s])
                users[labels[s]].add(labels[r])
        ready = [b for b in range(nblock) if not pending[b]]
        heapq.heapify(ready)
        order = []
        while ready:
            b = heapq.heappop(ready)
            order.append(b)
            for u in users[b]:
                pending[u].discard(b)
                if not pending[u]:
                    heapq.heappush(ready, u)

        members = [[] for _ in range(nblock)]
        for r in range(n):
            members[labels[r]].append(r)
        rowperm = []
        rowblock = [0]
        for b in order:
            rowperm.extend(members[b])
            rowblock.append(len(rowperm))
        colperm = [col_of_row[r] for r in rowperm]
        return rowperm, colperm, rowblock, list(rowblock)

    def __str__(self):
        return f"Sparsity({self.dim_string()}, {self.nnz} nnz)"
