from functools import reduce
from .common import DimensionError, PreconditionError, InvariantViolation, require, is_monotone, irange
from .sparsity import Sparsity, FROM_A, FROM_BOTH
from .matrix import Matrix
from . import expressions as ex

def transpose(m):
    return m.T

def mul(*ms):
    require(len(ms) > 0, PreconditionError, "mul: no matrices given")
    return reduce(Matrix.mtimes, ms[1:], ms[0].copy())

# Concatenation and splitting

def horzcat(ms):
    ms = list(ms)
    data = []
    for m in ms:
        data.extend(m.data)
    return Matrix(Sparsity.horzcat([m.sparsity for m in ms]), data)

def vertcat(ms):
    return horzcat([m.T for m in ms]).T

def blockcat(*args):
    """Concatenate a list of block rows, or the four blocks `a, b, c, d`."""
    if len(args) == 4:
        rows = [[args[0], args[1]], [args[2], args[3]]]
    else:
        rows, = args
    return vertcat([horzcat(row) for row in rows])

def split_offsets(offsets, n, name):
    if isinstance(offsets, int):
        require(offsets > 0, PreconditionError, f"{name}: increment must be positive, got {offsets}")
        offsets = irange(0, n, offsets) or [0]
    offsets = list(offsets)
    require(len(offsets) > 0, PreconditionError, f"{name}: no offsets given")
    require(offsets[0] == 0, PreconditionError, f"{name}: first offset must be 0, got {offsets[0]}")
    require(is_monotone(offsets), PreconditionError, f"{name}: offsets must be non-decreasing")
    require(offsets[-1] <= n, PreconditionError,
        f"{name}: last offset {offsets[-1]} exceeds the dimension {n}")
    return offsets

def horzsplit(m, offsets=1):
    offsets = split_offsets(offsets, m.ncol, "horzsplit")
    sp = m.sparsity
    pieces = []
    for start, stop in zip(offsets, offsets[1:] + [m.ncol]):
        first = sp.colind[start]
        last = sp.colind[stop]
        piece = Sparsity(sp.nrow, stop - start,
                         [k - first for k in sp.colind[start:stop+1]], sp.row[first:last])
        pieces.append(Matrix(piece, m.data[first:last]))
    return pieces

def vertsplit(m, offsets=1):
    offsets = split_offsets(offsets, m.nrow, "vertsplit")
    return [piece.T for piece in horzsplit(m.T, offsets)]

def blocksplit(m, vert_offsets=1, horz_offsets=1):
    return [horzsplit(row, horz_offsets) for row in vertsplit(m, vert_offsets)]

# Reshaping and pattern manipulation

def reshape(m, *shape):
    """Same nonzeros in the same order, laid out as `(nrow, ncol)` or on a given pattern."""
    if len(shape) == 1 and isinstance(shape[0], Sparsity):
        sp = shape[0]
        if sp.nnz != m.nnz:
            raise InvariantViolation(
                f"reshape: pattern has {sp.nnz} nonzeros, matrix has {m.nnz}")
        return Matrix(sp, m.data)
    if len(shape) == 1:
        shape = tuple(shape[0])
    nrow, ncol = shape
    return Matrix(m.sparsity.reshape(nrow, ncol), m.data)

def unite(a, b):
    """Merge two matrices whose patterns do not overlap."""
    sp, tags = a.sparsity.pattern_union(b.sparsity)
    data = []
    ia = iter(a.data)
    ib = iter(b.data)
    for tag in tags:
        if tag == FROM_BOTH:
            raise InvariantViolation("unite: the two patterns overlap")
        data.append(next(ia) if tag == FROM_A else next(ib))
    return Matrix(sp, data)

def project(m, sparsity):
    require(m.shape == sparsity.shape, DimensionError,
        f"project: {m.dim_string()} onto {sparsity.dim_string()}")
    rows, cols = sparsity.get_triplet()
    return Matrix(sparsity, [m.get(r, c) for r, c in zip(rows, cols)])

def full(m):
    return m.densify()

def sparse(m, tol=0.0):
    return m.sparsify(tol)

def diag(m):
    sp, mapping = m.sparsity.get_diag()
    return Matrix(sp, [m.data[k] for k in mapping])

def blkdiag(ms):
    ms = list(ms)
    data = []
    for m in ms:
        data.extend(m.data)
    return Matrix(Sparsity.blkdiag([m.sparsity for m in ms]), data)

def vec(m):
    return reshape(m, m.numel, 1)

def vec_nz(m):
    return Matrix.column(m.data)

def veccat(ms):
    return vertcat([vec(m) for m in ms])

def vec_nz_cat(ms):
    return vertcat([vec_nz(m) for m in ms])

def repmat(m, n, k=1):
    return horzcat([vertcat([m] * n)] * k)

def kron(a, b):
    rows = []
    for i in range(a.nrow):
        row = []
        for j in range(a.ncol):
            if a.has_nz(i, j):
                row.append(a.get(i, j) * b)
            else:
                row.append(Matrix.sparse(b.nrow, b.ncol))
        rows.append(row)
    if not rows:
        return Matrix.sparse(0, a.ncol * b.ncol)
    return blockcat(rows)

# Reductions

def sum_cols(m):
    return m @ Matrix.ones(m.ncol, 1)

def sum_rows(m):
    return Matrix.ones(1, m.nrow) @ m

def sum_all(m):
    return sum_rows(sum_cols(m))

def total(values):
    return reduce(ex.add, values, 0.0)

def trace(m):
    require(m.is_square(), DimensionError, f"trace: matrix not square but {m.dim_string()}")
    return total(m.get(i, i) for i in range(m.nrow) if m.has_nz(i, i))

def inner_prod(x, y):
    require(x.shape == y.shape, DimensionError,
        f"inner_prod: dimension mismatch {x.dim_string()} and {y.dim_string()}")
    return sum_all(x * y).to_scalar()

def outer_prod(x, y):
    return x @ y.T

def require_vector(m, name):
    require(m.is_vector(), DimensionError, f"{name}: expected a vector, got {m.dim_string()}")

def norm_1(x):
    require_vector(x, "norm_1")
    return total(ex.fabs(v) for v in x.data)

def norm_2(x):
    require_vector(x, "norm_2")
    return ex.sqrt(inner_prod(x, x))

def norm_fro(m):
    return ex.sqrt(total(ex.sq(v) for v in m.data))

def norm_inf(x):
    require_vector(x, "norm_inf")
    return reduce(ex.fmax, (ex.fabs(v) for v in x.data), 0.0)

def polyval(p, x):
    """Evaluate the polynomial with coefficients `p` (highest power first) by Horner's rule."""
    coefficients = p.densify().data if isinstance(p, Matrix) else list(p)
    require(len(coefficients) > 0, PreconditionError, "polyval: no coefficients")
    result = coefficients[0]
    for c in coefficients[1:]:
        result = result * x + c
    return result

def add_multiple(a, v, res, trans_a=False):
    """`res + a v`, or `res + a^T v` with `trans_a`."""
    return res + ((a.T if trans_a else a) @ v)

def sprank(m):
    return m.sparsity.rank()

# Predicates over every stored entry

def is_constant(m):
    return all(ex.is_constant(v) for v in m.data)

def is_integer(m):
    return all(ex.is_integer(v) for v in m.data)

def is_regular(m):
    return all(ex.is_regular(v) for v in m.data)

def is_identity(m):
    if not m.is_square() or m.nnz != m.nrow or not m.sparsity.is_diagonal():
        return False
    return all(ex.is_one(v) for v in m.data)

def logic_all(m):
    """Logical and of every element. Structural zeros are false."""
    if not m.is_dense():
        return 0.0
    return reduce(ex.logic_and, m.data, 1.0)

def logic_any(m):
    """Logical or of every element."""
    return reduce(ex.logic_or, m.data, 0.0)
