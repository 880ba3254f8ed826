from .common import DimensionError, require
from .matrix import Matrix
from .tools import horzcat, norm_2, sum_all, total
from . import expressions as ex
import logging

log = logging.getLogger(__name__)

# Determinants by cofactor expansion

def det(a):
    require(a.is_square(), DimensionError, f"det: matrix not square but {a.dim_string()}")
    n = a.nrow
    if n == 0:
        return 1.0
    if n == 1:
        return a.get(0, 0)
    if n == 2:
        return a.get(0, 0) * a.get(1, 1) - a.get(0, 1) * a.get(1, 0)

    # Expand along the sparsest row or column, rows winning ties.
    row_counts = a.sparsity.row_counts()
    col_counts = a.sparsity.col_counts()
    i = min(range(n), key=row_counts.__getitem__)
    j = min(range(n), key=col_counts.__getitem__)
    if row_counts[i] <= col_counts[j]:
        if row_counts[i] == 0:
            return 0.0
        return total(a.get(i, k) * cofactor(a, i, k) for k in range(n) if a.has_nz(i, k))
    else:
        if col_counts[j] == 0:
            return 0.0
        return total(a.get(k, j) * cofactor(a, k, j) for k in a.sparsity.col_rows(j))

def minor(a, i, j):
    """Determinant of `a` with row `i` and column `j` removed."""
    n = a.nrow
    rows = [k for k in range(n) if k != i]
    cols = [k for k in range(a.ncol) if k != j]
    return det(a.get_sub(rows, cols))

def cofactor(a, i, j):
    m = minor(a, i, j)
    return -m if (i + j) % 2 else m

def adj(a):
    require(a.is_square(), DimensionError, f"adj: matrix not square but {a.dim_string()}")
    n = a.nrow
    rows = []
    cols = []
    values = []
    for i in range(n):
        for j in range(n):
            c = cofactor(a, i, j)
            if not ex.is_zero(c):
                rows.append(j)
                cols.append(i)
                values.append(c)
    return Matrix.triplet(rows, cols, values, n, n)

def inv(a):
    return adj(a) / det(a)

# Factorizations

def qr(a):
    """Modified Gram-Schmidt. Returns `(Q, R)` with `a = Q @ R` and R upper triangular."""
    require(a.nrow >= a.ncol, DimensionError, f"qr: fewer rows than columns in {a.dim_string()}")
    qs = []
    rs = []
    for i in range(a.ncol):
        qi = a[:, i]
        ri = Matrix.sparse(a.ncol, 1)
        for j in range(i):
            qj = qs[j]
            p = sum_all(qi * qj)
            if p.nnz:
                ri[j, 0] = p.to_scalar()
                qi = qi - ri[j, 0] * qj
        ri[i, 0] = norm_2(qi)
        qi = qi / ri[i, 0]
        qs.append(qi)
        rs.append(ri)
    return horzcat(qs), horzcat(rs)

def nullspace(a):
    """Basis of the null space of a wide matrix of full row rank, by Householder reflections."""
    n, m = a.shape
    require(m >= n, DimensionError,
        f"nullspace: expecting a flat matrix (more columns than rows), but got {a.dim_string()}")
    x_full = a.copy()
    seed = Matrix.eye(m)[:, n:m]
    us = []
    betas = []
    for i in range(n):
        x = x_full[i, i:m]
        u = x.copy()
        sigma = ex.sqrt(sum_all(x * x).to_scalar())
        x0 = x.get(0, 0)
        u[0, 0] = 1.0
        b = -ex.copysign(sigma, x0)
        u[0:1, 1:m-i] = u[0:1, 1:m-i] * ex.div(1.0, x0 - b)
        beta = 1.0 - ex.div(x0, b)
        block = x_full[i:n, i:m]
        x_full[i:n, i:m] = block - beta * ((block @ u.T) @ u)
        us.append(u)
        betas.append(beta)
    for i in reversed(range(n)):
        block = seed[i:m, 0:m-n]
        seed[i:m, 0:m-n] = block - betas[i] * (us[i].T @ (us[i] @ block))
    return seed

# Linear systems

def forward_substitution(a, b):
    x = columns(b)
    for i in range(a.ncol):
        pivot = a.get(i, i)
        for col in x:
            if i not in col:
                continue
            col[i] = ex.div(col[i], pivot)
            for k in range(a.sparsity.colind[i], a.sparsity.colind[i+1]):
                j = a.sparsity.row[k]
                if j > i:
                    update(col, j, a.data[k] * col[i])
    return from_columns(x, b.nrow)

def backward_substitution(a, b):
    x = columns(b)
    for i in reversed(range(a.ncol)):
        pivot = a.get(i, i)
        for col in x:
            if i not in col:
                continue
            col[i] = ex.div(col[i], pivot)
            for k in range(a.sparsity.colind[i], a.sparsity.colind[i+1]):
                j = a.sparsity.row[k]
                if j < i:
                    update(col, j, a.data[k] * col[i])
    return from_columns(x, b.nrow)

def columns(b):
    x = [{} for _ in range(b.ncol)]
    for (r, c), v in b.items():
        x[c][r] = v
    return x

def update(col, j, term):
    col[j] = col[j] - term if j in col else -term

def from_columns(x, nrow):
    rows = []
    cols = []
    values = []
    for c, col in enumerate(x):
        for r, v in col.items():
            rows.append(r)
            cols.append(c)
            values.append(v)
    return Matrix.triplet(rows, cols, values, nrow, len(x))

def solve(a, b):
    """Solve `a x = b`, exploiting triangular and block triangular structure of `a`."""
    require(a.nrow == b.nrow, DimensionError,
        f"solve: dimension mismatch, b has {b.nrow} rows while A has {a.nrow}")
    require(a.is_square(), DimensionError, f"solve: A not square but {a.dim_string()}")
    if a.is_tril():
        log.debug("solve: %s lower triangular, forward substitution", a.dim_string())
        return forward_substitution(a, b)
    if a.is_triu():
        log.debug("solve: %s upper triangular, backward substitution", a.dim_string())
        return backward_substitution(a, b)
    if a.has_nonstructural_zeros():
        log.debug("solve: removing stored zeros and retrying")
        return solve(a.sparsify(), b)

    rowperm, colperm, rowblock, colblock = a.sparsity.btf()
    log.debug("solve: block triangular form with %d blocks", len(rowblock) - 1)
    every = range(b.ncol)
    bperm = b.get_sub(rowperm, every)
    aperm = a.get_sub(rowperm, colperm)
    if aperm.is_tril():
        log.debug("solve: permuted system is lower triangular")
        xperm = forward_substitution(aperm, bperm)
    elif a.ncol <= 3:
        log.debug("solve: inverting by cofactors")
        xperm = inv(aperm) @ bperm
    else:
        log.debug("solve: QR factorization")
        q, r = qr(aperm)
        xperm = backward_substitution(r, q.T @ bperm)

    inv_colperm = [0] * len(colperm)
    for k, c in enumerate(colperm):
        inv_colperm[c] = k
    return xperm.get_sub(inv_colperm, every)

def pinv(a):
    if a.ncol >= a.nrow:
        return solve(a @ a.T, a).T
    return solve(a.T @ a, a.T)
