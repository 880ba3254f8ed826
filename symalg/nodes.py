from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum, auto
from itertools import count
from typing import Dict
from scipy import special
import numpy as np
import logging
import math

log = logging.getLogger(__name__)

class Op(IntEnum):
    CONST     = auto()
    PARAMETER = auto()
    ADD       = auto()
    SUB       = auto()
    MUL       = auto()
    DIV       = auto()
    NEG       = auto()
    EXP       = auto()
    LOG       = auto()
    POW       = auto()
    CONSTPOW  = auto()
    SQRT      = auto()
    SQ        = auto()
    SIN       = auto()
    COS       = auto()
    TAN       = auto()
    ASIN      = auto()
    ACOS      = auto()
    ATAN      = auto()
    LT        = auto()
    LE        = auto()
    EQ        = auto()
    NE        = auto()
    NOT       = auto()
    AND       = auto()
    OR        = auto()
    FLOOR     = auto()
    CEIL      = auto()
    FMOD      = auto()
    FABS      = auto()
    SIGN      = auto()
    COPYSIGN  = auto()
    IF_ELSE_ZERO = auto()
    ERF       = auto()
    FMIN      = auto()
    FMAX      = auto()
    INV       = auto()
    SINH      = auto()
    COSH      = auto()
    TANH      = auto()
    ASINH     = auto()
    ACOSH     = auto()
    ATANH     = auto()
    ATAN2     = auto()
    ERFINV    = auto()

def _if_else_zero(c, x):
    return x if c != 0 else 0.0

NUMERIC = {
    Op.ADD:      np.add,
    Op.SUB:      np.subtract,
    Op.MUL:      np.multiply,
    Op.DIV:      np.divide,
    Op.NEG:      np.negative,
    Op.EXP:      np.exp,
    Op.LOG:      np.log,
    Op.POW:      np.power,
    Op.CONSTPOW: np.power,
    Op.SQRT:     np.sqrt,
    Op.SQ:       np.square,
    Op.SIN:      np.sin,
    Op.COS:      np.cos,
    Op.TAN:      np.tan,
    Op.ASIN:     np.arcsin,
    Op.ACOS:     np.arccos,
    Op.ATAN:     np.arctan,
    Op.LT:       np.less,
    Op.LE:       np.less_equal,
    Op.EQ:       np.equal,
    Op.NE:       np.not_equal,
    Op.NOT:      np.logical_not,
    Op.AND:      np.logical_and,
    Op.OR:       np.logical_or,
    Op.FLOOR:    np.floor,
    Op.CEIL:     np.ceil,
    Op.FMOD:     np.fmod,
    Op.FABS:     np.abs,
    Op.SIGN:     np.sign,
    Op.COPYSIGN: np.copysign,
    Op.IF_ELSE_ZERO: _if_else_zero,
    Op.ERF:      special.erf,
    Op.FMIN:     np.fmin,
    Op.FMAX:     np.fmax,
    Op.INV:      np.reciprocal,
    Op.SINH:     np.sinh,
    Op.COSH:     np.cosh,
    Op.TANH:     np.tanh,
    Op.ASINH:    np.arcsinh,
    Op.ACOSH:    np.arccosh,
    Op.ATANH:    np.arctanh,
    Op.ATAN2:    np.arctan2,
    Op.ERFINV:   special.erfinv,
}

UNARY = frozenset([
    Op.NEG, Op.EXP, Op.LOG, Op.SQRT, Op.SQ, Op.SIN, Op.COS, Op.TAN,
    Op.ASIN, Op.ACOS, Op.ATAN, Op.NOT, Op.FLOOR, Op.CEIL, Op.FABS,
    Op.SIGN, Op.ERF, Op.INV, Op.SINH, Op.COSH, Op.TANH, Op.ASINH,
    Op.ACOSH, Op.ATANH, Op.ERFINV,
])

COMMUTATIVE = frozenset([
    Op.ADD, Op.MUL, Op.EQ, Op.NE, Op.AND, Op.OR, Op.FMIN, Op.FMAX,
])

INFIX = {
    Op.ADD: "+", Op.SUB: "-", Op.MUL: "*", Op.DIV: "/",
    Op.LT: "<", Op.LE: "<=", Op.EQ: "==", Op.NE: "!=",
    Op.AND: "&&", Op.OR: "||",
}

def compute(op, x, y=0.0):
    with np.errstate(all='ignore'):
        if op in UNARY:
            return float(NUMERIC[op](np.float64(x)))
        return float(NUMERIC[op](np.float64(x), np.float64(y)))

class ConstantCache:
    """Maps raw literal values to the node already built for them.

    The tables only point at nodes; a constant node removes its own entry
    when it is freed.
    """
    def __init__(self):
        self.integers : Dict[int, 'Integer'] = {}
        self.reals    : Dict[float, 'Real']  = {}

    def __len__(self):
        return len(self.integers) + len(self.reals)

constants = ConstantCache()

@contextmanager
def fresh_cache():
    global constants
    previous, constants = constants, ConstantCache()
    log.debug("installed fresh constant cache")
    try:
        yield constants
    finally:
        constants = previous

@dataclass(eq=False)
class Stats:
    allocated : int = 0
    released  : int = 0

    @property
    def live(self):
        return self.allocated - self.released

stats = Stats()

class Node:
    __slots__ = ("count", "temp")
    op = None

    def __init__(self):
        self.count = 0
        self.temp  = 0
        stats.allocated += 1
        for dep in self.deps():
            dep.count += 1

    def deps(self):
        return ()

    def free(self):
        pass

    def is_constant(self):
        return False

    def is_integer(self):
        return False

    def is_symbolic(self):
        return False

    def has_dep(self):
        return False

    def is_zero(self):
        return False

    def is_almost_zero(self, tol):
        return False

    def is_one(self):
        return False

    def is_minus_one(self):
        return False

    def is_nan(self):
        return False

    def is_inf(self):
        return False

    def is_minus_inf(self):
        return False

    @property
    def value(self):
        raise TypeError(f"{self.stringify()} is not a constant and has no value")

    @property
    def int_value(self):
        raise TypeError(f"{self.stringify()} is not an integer constant")

    @property
    def name(self):
        raise TypeError(f"{self.stringify()} is not a symbol and has no name")

    def dep(self, i=0):
        raise TypeError(f"{self.stringify()} has no dependencies")

    @property
    def n_dep(self):
        return len(self.deps())

    def is_equal(self, other, depth):
        return False

    def mark(self):
        self.temp = -self.temp - 1

    def marked(self):
        return self.temp < 0

    def __str__(self):
        return self.stringify()

    def __repr__(self):
        return f"{type(self).__name__}({self.stringify()})"

class Constant(Node):
    __slots__ = ()
    op = Op.CONST

    def is_constant(self):
        return True

    def is_zero(self):
        return self.value == 0

    def is_almost_zero(self, tol):
        return abs(self.value) <= tol

    def is_one(self):
        return self.value == 1

    def is_minus_one(self):
        return self.value == -1

    def is_equal(self, other, depth):
        return other.is_constant() and other.value == self.value

    def evaluate(self, known):
        return float(self.value)

class Integer(Constant):
    __slots__ = ("value", "cache")

    def __init__(self, value):
        self.value = value
        self.cache = None
        super().__init__()

    @classmethod
    def create(cls, value):
        node = constants.integers.get(value)
        if node is None:
            node = cls(value)
            node.cache = constants.integers
            constants.integers[value] = node
        return node

    def free(self):
        if self.cache is not None and self.cache.get(self.value) is self:
            del self.cache[self.value]

    def is_integer(self):
        return True

    @property
    def int_value(self):
        return self.value

    def stringify(self):
        return str(self.value)

class Real(Constant):
    __slots__ = ("value", "cache")

    def __init__(self, value):
        self.value = value
        self.cache = None
        super().__init__()

    @classmethod
    def create(cls, value):
        node = constants.reals.get(value)
        if node is None:
            node = cls(value)
            node.cache = constants.reals
            constants.reals[value] = node
        return node

    def free(self):
        if self.cache is not None and self.cache.get(self.value) is self:
            del self.cache[self.value]

    def is_nan(self):
        return math.isnan(self.value)

    def is_inf(self):
        return self.value == math.inf

    def is_minus_inf(self):
        return self.value == -math.inf

    def is_equal(self, other, depth):
        if self.is_nan():
            return other.is_nan()
        return super().is_equal(other, depth)

    def stringify(self):
        return repr(self.value)

_symbol_ids = count()

class Symbol(Node):
    __slots__ = ("name", "id")
    op = Op.PARAMETER

    def __init__(self, name):
        self.name = name
        self.id = next(_symbol_ids)
        super().__init__()

    def is_symbolic(self):
        return True

    def evaluate(self, known):
        raise KeyError(f"no value given for symbol {self.name}")

    def stringify(self):
        return self.name

class Unary(Node):
    __slots__ = ("op", "arg")

    def __init__(self, op, arg):
        self.op  = op
        self.arg = arg
        super().__init__()

    def deps(self):
        return (self.arg,)

    def has_dep(self):
        return True

    def dep(self, i=0):
        if i != 0:
            raise IndexError(f"unary node has no dependency {i}")
        return self.arg

    def is_equal(self, other, depth):
        return (isinstance(other, Unary) and self.op == other.op
                and node_equal(self.arg, other.arg, depth-1))

    def evaluate(self, known):
        return compute(self.op, known[self.arg])

    def stringify(self):
        if self.op == Op.NEG:
            return f"(-{self.arg.stringify()})"
        return f"{self.op.name.lower()}({self.arg.stringify()})"

class Binary(Node):
    __slots__ = ("op", "lhs", "rhs")

    def __init__(self, op, lhs, rhs):
        self.op  = op
        self.lhs = lhs
        self.rhs = rhs
        super().__init__()

    def deps(self):
        return (self.lhs, self.rhs)

    def has_dep(self):
        return True

    def dep(self, i=0):
        if i == 0:
            return self.lhs
        elif i == 1:
            return self.rhs
        raise IndexError(f"binary node has no dependency {i}")

    def is_equal(self, other, depth):
        if not isinstance(other, Binary) or self.op != other.op:
            return False
        if node_equal(self.lhs, other.lhs, depth-1) and node_equal(self.rhs, other.rhs, depth-1):
            return True
        return (self.op in COMMUTATIVE
                and node_equal(self.lhs, other.rhs, depth-1)
                and node_equal(self.rhs, other.lhs, depth-1))

    def evaluate(self, known):
        return compute(self.op, known[self.lhs], known[self.rhs])

    def stringify(self):
        lhs = self.lhs.stringify()
        rhs = self.rhs.stringify()
        if self.op in INFIX:
            return f"({lhs}{INFIX[self.op]}{rhs})"
        return f"{self.op.name.lower()}({lhs},{rhs})"

def node_equal(x, y, depth):
    if x is y:
        return True
    elif depth > 0:
        return x.is_equal(y, depth)
    else:
        return False

def release(node):
    # Children are decremented only after their parent is freed.
    stack = [node]
    while stack:
        node = stack.pop()
        node.count -= 1
        if node.count == 0:
            node.free()
            stats.released += 1
            stack.extend(node.deps())
