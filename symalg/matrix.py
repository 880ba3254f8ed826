from dataclasses import dataclass
from numbers import Number
from typing import List, Any
from .common import DimensionError, InvariantViolation, dim_string, require
from .sparsity import Sparsity, FROM_A, FROM_B, FROM_BOTH
from . import expressions as ex
import numpy as np

UNION        = "union"
INTERSECTION = "intersection"
NUMERATOR    = "numerator"
DENSE        = "dense"

# Pattern of an element-wise binary result, by the function applied.
# Functions with f(0, 0) != 0 have to see every position.
PATTERNS = {
    ex.add: UNION,
    ex.sub: UNION,
    ex.mul: INTERSECTION,
    ex.div: NUMERATOR,
    ex.le: DENSE,
    ex.eq: DENSE,
    ex.power: DENSE,
    ex.constpow: DENSE,
    ex.fmod: DENSE,
}

def index_list(key, n):
    if isinstance(key, slice):
        return list(range(n)[key])
    if isinstance(key, (int, np.integer)):
        key = [key]
    out = []
    for k in key:
        k = int(k)
        if k < 0:
            k += n
        if not 0 <= k < n:
            raise IndexError(f"index {k} out of range for dimension {n}")
        out.append(k)
    return out

def is_index(key):
    return isinstance(key, (int, np.integer))

@dataclass(eq=False)
class Matrix(ex.Compound):
    """Sparse matrix over floats and/or Scalars.

    `data` holds one entry per structural nonzero of `sparsity`, in
    column-major order. Positions outside the pattern read back as 0.0.
    """
    sparsity : Sparsity
    data     : List[Any]

    def __post_init__(self):
        self.data = list(self.data)
        if len(self.data) != self.sparsity.nnz:
            raise InvariantViolation(
                f"matrix: {len(self.data)} entries for a pattern with {self.sparsity.nnz} nonzeros")

    # Construction

    @classmethod
    def sparse(cls, nrow, ncol=1):
        return cls(Sparsity.sparse(nrow, ncol), [])

    @classmethod
    def zeros(cls, nrow, ncol=1):
        return cls.filled(nrow, ncol, 0.0)

    @classmethod
    def ones(cls, nrow, ncol=1):
        return cls.filled(nrow, ncol, 1.0)

    @classmethod
    def filled(cls, nrow, ncol, value):
        sp = Sparsity.dense(nrow, ncol)
        return cls(sp, [value] * sp.nnz)

    @classmethod
    def eye(cls, n):
        return cls(Sparsity.diag(n), [1.0] * n)

    @classmethod
    def scalar(cls, value):
        return cls(Sparsity.scalar(), [value])

    @classmethod
    def column(cls, values):
        values = list(values)
        return cls(Sparsity.dense(len(values), 1), values)

    @classmethod
    def dense(cls, rows):
        """Dense matrix from a list of rows; a flat list makes a column."""
        rows = list(rows)
        if rows and not isinstance(rows[0], (list, tuple)):
            return cls.column(rows)
        nrow = len(rows)
        ncol = len(rows[0]) if rows else 0
        for r in rows:
            require(len(r) == ncol, DimensionError, "dense: rows differ in length")
        data = [rows[i][j] for j in range(ncol) for i in range(nrow)]
        return cls(Sparsity.dense(nrow, ncol), data)

    @classmethod
    def triplet(cls, rows, cols, values, nrow, ncol):
        require(len(values) == len(rows), DimensionError,
            "triplet: value list and index lists differ in length")
        sp, mapping = Sparsity.triplet(nrow, ncol, rows, cols)
        data = [0.0] * sp.nnz
        for k, v in zip(mapping, values):
            data[k] = v
        return cls(sp, data)

    @classmethod
    def from_array(cls, array, sparse=False):
        array = np.atleast_2d(np.asarray(array, dtype=float))
        require(array.ndim == 2, DimensionError, f"from_array: expected 2 dimensions, got {array.ndim}")
        nrow, ncol = array.shape
        if not sparse:
            return cls(Sparsity.dense(nrow, ncol), [float(v) for v in array.flatten(order='F')])
        rows, cols = np.nonzero(array)
        return cls.triplet(rows.tolist(), cols.tolist(),
            [float(array[i, j]) for i, j in zip(rows, cols)], nrow, ncol)

    @classmethod
    def sym(cls, name, nrow=1, ncol=1):
        if nrow == 1 and ncol == 1:
            return cls.scalar(ex.sym(name))
        sp = Sparsity.dense(nrow, ncol)
        return cls(sp, [ex.sym(f"{name}_{k}") for k in range(sp.nnz)])

    def copy(self):
        return Matrix(self.sparsity, self.data)

    __copy__ = copy

    # Shape

    @property
    def nrow(self):
        return self.sparsity.nrow

    @property
    def ncol(self):
        return self.sparsity.ncol

    @property
    def shape(self):
        return self.sparsity.shape

    @property
    def nnz(self):
        return self.sparsity.nnz

    @property
    def numel(self):
        return self.sparsity.numel

    def dim_string(self):
        return dim_string(self.nrow, self.ncol)

    def is_dense(self):
        return self.sparsity.is_dense()

    def is_empty(self):
        return self.sparsity.is_empty()

    def is_scalar(self):
        return self.sparsity.is_scalar()

    def is_vector(self):
        return self.sparsity.is_vector()

    def is_column(self):
        return self.sparsity.is_column()

    def is_square(self):
        return self.sparsity.is_square()

    def is_tril(self):
        return self.sparsity.is_tril()

    def is_triu(self):
        return self.sparsity.is_triu()

    # Element access

    def items(self):
        cols = self.sparsity.get_col()
        for r, c, v in zip(self.sparsity.row, cols, self.data):
            yield (r, c), v

    def has_nz(self, i, j):
        return self.sparsity.has_nz(i, j)

    def get(self, i, j):
        k = self.sparsity.get_nz(i, j)
        return self.data[k] if k >= 0 else 0.0

    def _key(self, key):
        if isinstance(key, tuple):
            return key
        if not self.is_vector():
            raise IndexError(f"single index into a {self.dim_string()} matrix")
        return (key, 0) if self.is_column() else (0, key)

    def __getitem__(self, key):
        i, j = self._key(key)
        if is_index(i) and is_index(j):
            return self.get(int(i), int(j))
        return self.get_sub(index_list(i, self.nrow), index_list(j, self.ncol))

    def __setitem__(self, key, value):
        i, j = self._key(key)
        if is_index(i) and is_index(j):
            self.set(int(i), int(j), value)
        else:
            self.set_sub(index_list(i, self.nrow), index_list(j, self.ncol), value)

    def get_sub(self, rows, cols):
        sp, mapping = self.sparsity.sub(rows, cols)
        return Matrix(sp, [self.data[k] for k in mapping])

    def set(self, i, j, value):
        k = self.sparsity.get_nz(i, j)
        if k >= 0:
            self.data[k] = value
        else:
            i, j = index_list(i, self.nrow)[0], index_list(j, self.ncol)[0]
            entries = dict(self.items())
            entries[(i, j)] = value
            self._rebuild(entries)

    def set_sub(self, rows, cols, value):
        if not isinstance(value, Matrix):
            value = Matrix.filled(len(rows), len(cols), value)
        elif value.is_scalar() and (len(rows), len(cols)) != (1, 1):
            value = Matrix.filled(len(rows), len(cols), value.to_scalar())
        if value.shape != (len(rows), len(cols)):
            raise DimensionError(
                f"set_sub: {value.dim_string()} value for a {dim_string(len(rows), len(cols))} block")
        rowset = set(rows)
        colset = set(cols)
        entries = {rc: v for rc, v in self.items()
                   if not (rc[0] in rowset and rc[1] in colset)}
        for (ii, jj), v in value.items():
            entries[(rows[ii], cols[jj])] = v
        self._rebuild(entries)

    def _rebuild(self, entries):
        rows = [r for r, _ in entries]
        cols = [c for _, c in entries]
        sp, mapping = Sparsity.triplet(self.nrow, self.ncol, rows, cols)
        data = [None] * sp.nnz
        for k, v in zip(mapping, entries.values()):
            data[k] = v
        self.sparsity = sp
        self.data = data

    def append_columns(self, other):
        self.sparsity = Sparsity.horzcat([self.sparsity, other.sparsity])
        self.data = self.data + list(other.data)
        return self

    # Conversion

    @property
    def T(self):
        sp, mapping = self.sparsity.transpose()
        return Matrix(sp, [self.data[k] for k in mapping])

    def to_array(self):
        out = np.zeros(self.shape, dtype=float)
        for (r, c), v in self.items():
            out[r, c] = float(v)
        return out

    def to_scalar(self):
        require(self.is_scalar(), DimensionError, f"to_scalar: matrix is {self.dim_string()}")
        return self.data[0] if self.nnz else 0.0

    def __float__(self):
        return float(self.to_scalar())

    def sparsify(self, tol=0.0):
        """Drop the stored entries whose value is (almost) zero."""
        rows = []
        cols = []
        values = []
        for (r, c), v in self.items():
            if not ex.is_almost_zero(v, tol):
                rows.append(r)
                cols.append(c)
                values.append(v)
        return Matrix.triplet(rows, cols, values, self.nrow, self.ncol)

    def densify(self, value=0.0):
        if self.is_dense():
            return self.copy()
        data = []
        for c in range(self.ncol):
            for r in range(self.nrow):
                k = self.sparsity.get_nz(r, c)
                data.append(self.data[k] if k >= 0 else value)
        return Matrix(Sparsity.dense(self.nrow, self.ncol), data)

    def has_nonstructural_zeros(self):
        return any(ex.is_zero(v) for v in self.data)

    def is_equal(self, other, depth=0):
        return (self.sparsity == other.sparsity
                and all(ex.is_equal(a, b, depth) for a, b in zip(self.data, other.data)))

    # Arithmetic

    def distribute(self, fn, dense=False):
        x = self.densify() if dense and not self.is_dense() else self
        return Matrix(x.sparsity, [fn(v) for v in x.data])

    def compound(self, other, fn, reverse=False):
        """Apply the element-wise binary `fn`, with `self` on the left unless `reverse`."""
        pattern = PATTERNS.get(fn, UNION)
        if isinstance(other, Matrix) and other.is_scalar() and not self.is_scalar():
            other = other.to_scalar()
        if isinstance(other, Matrix) and self.is_scalar() and not other.is_scalar():
            return other.compound(self.to_scalar(), fn, not reverse)
        if not isinstance(other, Matrix):
            keep = pattern == INTERSECTION or (pattern == NUMERATOR and not reverse)
            x = self if keep else self.densify()
            if reverse:
                return Matrix(x.sparsity, [fn(other, v) for v in x.data])
            return Matrix(x.sparsity, [fn(v, other) for v in x.data])

        lhs, rhs = (other, self) if reverse else (self, other)
        if lhs.shape != rhs.shape:
            raise DimensionError(
                f"element-wise operation: dimension mismatch {lhs.dim_string()} and {rhs.dim_string()}")
        if pattern == NUMERATOR:
            return Matrix(lhs.sparsity, [fn(v, rhs.get(r, c)) for (r, c), v in lhs.items()])
        if pattern == DENSE:
            lhs = lhs.densify()
            rhs = rhs.densify()
        sp, tags = lhs.sparsity.pattern_union(rhs.sparsity)
        rows = []
        cols = []
        values = []
        a = 0
        b = 0
        for r, c, tag in zip(sp.row, sp.get_col(), tags):
            x = lhs.data[a] if tag & FROM_A else 0.0
            y = rhs.data[b] if tag & FROM_B else 0.0
            a += bool(tag & FROM_A)
            b += bool(tag & FROM_B)
            if pattern == INTERSECTION and tag != FROM_BOTH:
                continue
            rows.append(r)
            cols.append(c)
            values.append(fn(x, y))
        if pattern == INTERSECTION:
            return Matrix.triplet(rows, cols, values, sp.nrow, sp.ncol)
        return Matrix(sp, values)

    def mtimes(self, other):
        """Matrix product, with nonzeros only where some product term exists."""
        if self.ncol != other.nrow:
            raise DimensionError(
                f"mul: dimension mismatch {self.dim_string()} times {other.dim_string()}")
        x = self.sparsity
        y = other.sparsity
        colind = [0]
        rows = []
        data = []
        for j in range(y.ncol):
            acc = {}
            for ky in range(y.colind[j], y.colind[j+1]):
                k = y.row[ky]
                b = other.data[ky]
                for kx in range(x.colind[k], x.colind[k+1]):
                    i = x.row[kx]
                    term = self.data[kx] * b
                    acc[i] = acc[i] + term if i in acc else term
            for i in sorted(acc):
                rows.append(i)
                data.append(acc[i])
            colind.append(len(rows))
        return Matrix(Sparsity(x.nrow, y.ncol, colind, rows), data)

    def __matmul__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.mtimes(other)

    def __rmatmul__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return other.mtimes(self)

    def __pos__(self):
        return self

    def __abs__(self):
        return ex.fabs(self)

    def __add__(self, other):
        return binary_operand(self, other, ex.add)

    def __radd__(self, other):
        return binary_operand(self, other, ex.add, True)

    def __sub__(self, other):
        return binary_operand(self, other, ex.sub)

    def __rsub__(self, other):
        return binary_operand(self, other, ex.sub, True)

    def __mul__(self, other):
        return binary_operand(self, other, ex.mul)

    def __rmul__(self, other):
        return binary_operand(self, other, ex.mul, True)

    def __truediv__(self, other):
        return binary_operand(self, other, ex.div)

    def __rtruediv__(self, other):
        return binary_operand(self, other, ex.div, True)

    def __pow__(self, other):
        return binary_operand(self, other, ex.power)

    def __rpow__(self, other):
        return binary_operand(self, other, ex.power, True)

    def __str__(self):
        lines = []
        for r in range(self.nrow):
            cells = []
            for c in range(self.ncol):
                k = self.sparsity.get_nz(r, c)
                cells.append(str(self.data[k]) if k >= 0 else "00")
            lines.append("[" + ", ".join(cells) + "]")
        return f"Matrix({self.dim_string()}: [" + ", ".join(lines) + "])"

def binary_operand(matrix, other, fn, reverse=False):
    if not isinstance(other, (Matrix, ex.Scalar, Number)):
        return NotImplemented
    return matrix.compound(other, fn, reverse)
