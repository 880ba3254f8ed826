from contextlib import contextmanager
from dataclasses import dataclass

class AlgebraError(Exception):
    pass

class DimensionError(AlgebraError, ValueError):
    pass

class PreconditionError(AlgebraError, ValueError):
    pass

class InvariantViolation(AlgebraError):
    pass

@dataclass(eq=False)
class Options:
    # Construction-time rewrites and constant folding.
    simplification : bool = True
    # Depth used by the rewrite rules when comparing operands.
    eq_depth       : int  = 1

options = Options()

@contextmanager
def simplification(enabled):
    previous = options.simplification
    options.simplification = enabled
    try:
        yield options
    finally:
        options.simplification = previous

def require(cond, error, message):
    if not cond:
        raise error(message)

def dim_string(nrow, ncol):
    return f"{nrow}x{ncol}"

def is_monotone(xs):
    return all(a <= b for a, b in zip(xs, xs[1:]))

def irange(start, stop, step=1):
    return list(range(start, stop, step))
