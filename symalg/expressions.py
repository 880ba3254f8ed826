from numbers import Number
from typing import Dict, Any
from . import nodes, rules
from .nodes import Op, Node, Integer, Real, Symbol, Unary, Binary, release, compute, node_equal
from .common import options
import math

class Scalar:
    """Handle on one expression node.

    Holds exactly one counted reference: building a handle increments the
    count of its node and dropping the handle decrements it, freeing the
    node (and, transitively, its children) when nothing refers to it.
    """
    __slots__ = ("node",)

    def __init__(self, value=math.nan):
        if isinstance(value, Scalar):
            node = value.node
        elif isinstance(value, Node):
            node = value
        else:
            node = literal(value)
        node.count += 1
        self.node = node

    def __del__(self):
        node = getattr(self, "node", None)
        if node is not None:
            release(node)

    def __copy__(self):
        return Scalar(self.node)

    def __deepcopy__(self, memo):
        return Scalar(self.node)

    def assign(self, other):
        other = convert(other)
        if self.node is other.node:
            return self
        old = self.node
        self.node = other.node
        self.node.count += 1
        release(old)
        return self

    def assign_if_duplicate(self, other, depth=1):
        assert depth >= 1
        if not is_equal(self, other, 0) and is_equal(self, other, depth):
            self.assign(other)

    def __bool__(self):
        if self.node.is_constant():
            return not self.node.is_zero()
        raise TypeError(f"cannot compute the truth value of symbolic expression {self}")

    def __float__(self):
        return float(self.node.value)

    def __int__(self):
        return int(self.node.value)

    def __hash__(self):
        return id(self.node)

    def __str__(self):
        return self.node.stringify()

    def __repr__(self):
        return f"Scalar({self.node.stringify()})"

    # Queries

    def is_constant(self):
        return self.node.is_constant()

    def is_integer(self):
        return self.node.is_integer()

    def is_symbolic(self):
        return self.node.is_symbolic()

    def is_leaf(self):
        return self.node.is_constant() or self.node.is_symbolic()

    def has_dep(self):
        return self.node.has_dep()

    def is_zero(self):
        return self.node.is_zero()

    def is_almost_zero(self, tol):
        return self.node.is_almost_zero(tol)

    def is_one(self):
        return self.node.is_one()

    def is_minus_one(self):
        return self.node.is_minus_one()

    def is_nan(self):
        return self.node.is_nan()

    def is_inf(self):
        return self.node.is_inf()

    def is_minus_inf(self):
        return self.node.is_minus_inf()

    def is_op(self, op):
        return self.node.has_dep() and self.node.op == op

    def is_commutative(self):
        if not self.node.has_dep():
            raise TypeError("is_commutative: must be an operation")
        return self.node.op in nodes.COMMUTATIVE

    def is_doubled(self):
        return self.is_op(Op.ADD) and node_equal(self.node.lhs, self.node.rhs, options.eq_depth)

    def is_nonnegative(self):
        if self.is_constant():
            return self.value >= 0
        return self.is_op(Op.SQ) or self.is_op(Op.FABS)

    def is_regular(self):
        if self.is_constant():
            return not (self.is_nan() or self.is_inf() or self.is_minus_inf())
        raise TypeError("cannot check regularity of a symbolic expression")

    @property
    def op(self):
        return self.node.op

    @property
    def n_dep(self):
        return self.node.n_dep

    def dep(self, i=0):
        return Scalar(self.node.dep(i))

    @property
    def name(self):
        return self.node.name

    @property
    def value(self):
        return self.node.value

    @property
    def int_value(self):
        return self.node.int_value

    @property
    def temp(self):
        return self.node.temp

    @temp.setter
    def temp(self, t):
        self.node.temp = t

    def mark(self):
        self.node.mark()

    def marked(self):
        return self.node.marked()

    # Graph construction through operators

    def __neg__(self):
        return neg(self)

    def __pos__(self):
        return self

    def __abs__(self):
        return fabs(self)

    def __add__(self, other):
        return operands(self, other, add)

    def __radd__(self, other):
        return operands(other, self, add)

    def __sub__(self, other):
        return operands(self, other, sub)

    def __rsub__(self, other):
        return operands(other, self, sub)

    def __mul__(self, other):
        return operands(self, other, mul)

    def __rmul__(self, other):
        return operands(other, self, mul)

    def __truediv__(self, other):
        return operands(self, other, div)

    def __rtruediv__(self, other):
        return operands(other, self, div)

    def __pow__(self, other):
        return operands(self, other, power)

    def __rpow__(self, other):
        return operands(other, self, power)

    def __lt__(self, other):
        return operands(self, other, lt)

    def __le__(self, other):
        return operands(self, other, le)

    def __gt__(self, other):
        return operands(other, self, lt)

    def __ge__(self, other):
        return operands(other, self, le)

    def __eq__(self, other):
        return operands(self, other, eq)

    def __ne__(self, other):
        return operands(self, other, ne)

def operands(lhs, rhs, fn):
    if isinstance(lhs, Compound) or isinstance(rhs, Compound):
        return NotImplemented
    if not isinstance(lhs, (Scalar, Number)) or not isinstance(rhs, (Scalar, Number)):
        return NotImplemented
    return fn(lhs, rhs)

def literal(value):
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        return _special.get(value) or Integer.create(value)
    value = float(value)
    if value.is_integer() and -2**63 <= value < 2**63:
        value = int(value)
        return _special.get(value) or Integer.create(value)
    elif math.isnan(value):
        return nan.node
    elif math.isinf(value):
        return inf.node if value > 0 else minus_inf.node
    else:
        return Real.create(value)

def convert(obj):
    if isinstance(obj, Scalar):
        return obj
    return Scalar(obj)

def sym(name):
    return Scalar(Symbol(name))

def is_equal(x, y, depth=0):
    return node_equal(convert(x).node, convert(y).node, depth)

# Always-alive constants, rooted here for the lifetime of the process.
zero      = Scalar(Integer(0))
one       = Scalar(Integer(1))
two       = Scalar(Integer(2))
minus_one = Scalar(Integer(-1))
nan       = Scalar(Real(math.nan))
inf       = Scalar(Real(math.inf))
minus_inf = Scalar(Real(-math.inf))

_special = {0: zero.node, 1: one.node, 2: two.node, -1: minus_one.node}

SINGLETONS = (zero, one, two, minus_one, nan, inf, minus_inf)

# Node creation. Constant operands are folded unless simplification is off;
# rewrite rules only see operations with at least one non-constant operand.

def unary(op, x):
    x = convert(x)
    if options.simplification and x.is_constant():
        return Scalar(compute(op, x.value))
    return Scalar(Unary(op, x.node))

def binary(op, x, y):
    x = convert(x)
    y = convert(y)
    if options.simplification and x.is_constant() and y.is_constant():
        return Scalar(compute(op, x.value, y.value))
    return Scalar(Binary(op, x.node, y.node))

def unary_op(op, x):
    x = convert(x)
    if options.simplification and not x.is_constant():
        result = rules.simplify(op, x)
        if result is not None:
            return result
    return unary(op, x)

def binary_op(op, x, y):
    x = convert(x)
    y = convert(y)
    if options.simplification and not (x.is_constant() and y.is_constant()):
        result = rules.simplify(op, x, y)
        if result is not None:
            return result
    return binary(op, x, y)

# Containers of scalars (matrices) distribute element-wise operations.

class Compound:
    def distribute(self, fn, dense=False):
        raise NotImplementedError

    def compound(self, other, fn, reverse=False):
        raise NotImplementedError

    def __neg__(self):
        return self.distribute(neg)

def elementwise(op, obj, fn, dense=False):
    if isinstance(obj, Compound):
        return obj.distribute(fn, dense)
    elif isinstance(obj, Scalar):
        return unary_op(op, obj)
    else:
        return compute(op, obj)

def elementwise2(op, lhs, rhs, fn):
    if isinstance(lhs, Compound) or isinstance(rhs, Compound):
        if isinstance(lhs, Compound):
            return lhs.compound(rhs, fn)
        return rhs.compound(lhs, fn, reverse=True)
    elif isinstance(lhs, Scalar) or isinstance(rhs, Scalar):
        return binary_op(op, lhs, rhs)
    else:
        return compute(op, lhs, rhs)

def add(x, y):
    return elementwise2(Op.ADD, x, y, add)

def sub(x, y):
    return elementwise2(Op.SUB, x, y, sub)

def mul(x, y):
    return elementwise2(Op.MUL, x, y, mul)

def div(x, y):
    return elementwise2(Op.DIV, x, y, div)

def power(x, n):
    return elementwise2(Op.POW, x, n, power)

def constpow(x, n):
    return elementwise2(Op.CONSTPOW, x, n, constpow)

def fmin(x, y):
    return elementwise2(Op.FMIN, x, y, fmin)

def fmax(x, y):
    return elementwise2(Op.FMAX, x, y, fmax)

def atan2(y, x):
    return elementwise2(Op.ATAN2, y, x, atan2)

def fmod(x, y):
    return elementwise2(Op.FMOD, x, y, fmod)

def copysign(x, y):
    return elementwise2(Op.COPYSIGN, x, y, copysign)

def lt(x, y):
    return elementwise2(Op.LT, x, y, lt)

def le(x, y):
    return elementwise2(Op.LE, x, y, le)

def gt(x, y):
    return lt(y, x)

def ge(x, y):
    return le(y, x)

def eq(x, y):
    return elementwise2(Op.EQ, x, y, eq)

def ne(x, y):
    return elementwise2(Op.NE, x, y, ne)

def logic_and(x, y):
    return elementwise2(Op.AND, x, y, logic_and)

def logic_or(x, y):
    return elementwise2(Op.OR, x, y, logic_or)

def if_else_zero(c, x):
    return elementwise2(Op.IF_ELSE_ZERO, c, x, if_else_zero)

def if_else(c, x, y):
    return add(if_else_zero(c, x), if_else_zero(logic_not(c), y))

def neg(x):
    return elementwise(Op.NEG, x, neg)

def exp(x):
    return elementwise(Op.EXP, x, exp, dense=True)

def log(x):
    return elementwise(Op.LOG, x, log, dense=True)

def log10(x):
    if isinstance(x, Compound):
        return x.distribute(log10, dense=True)
    return mul(log(x), 1 / math.log(10.0))

def sqrt(x):
    return elementwise(Op.SQRT, x, sqrt)

def sq(x):
    return elementwise(Op.SQ, x, sq)

def sin(x):
    return elementwise(Op.SIN, x, sin)

def cos(x):
    return elementwise(Op.COS, x, cos, dense=True)

def tan(x):
    return elementwise(Op.TAN, x, tan)

def asin(x):
    return elementwise(Op.ASIN, x, asin)

def acos(x):
    return elementwise(Op.ACOS, x, acos, dense=True)

def atan(x):
    return elementwise(Op.ATAN, x, atan)

def sinh(x):
    return elementwise(Op.SINH, x, sinh)

def cosh(x):
    return elementwise(Op.COSH, x, cosh, dense=True)

def tanh(x):
    return elementwise(Op.TANH, x, tanh)

def asinh(x):
    return elementwise(Op.ASINH, x, asinh)

def acosh(x):
    return elementwise(Op.ACOSH, x, acosh, dense=True)

def atanh(x):
    return elementwise(Op.ATANH, x, atanh)

def floor(x):
    return elementwise(Op.FLOOR, x, floor)

def ceil(x):
    return elementwise(Op.CEIL, x, ceil)

def fabs(x):
    return elementwise(Op.FABS, x, fabs)

def sign(x):
    return elementwise(Op.SIGN, x, sign)

def erf(x):
    return elementwise(Op.ERF, x, erf)

def erfinv(x):
    return elementwise(Op.ERFINV, x, erfinv)

def inv(x):
    return elementwise(Op.INV, x, inv, dense=True)

def logic_not(x):
    return elementwise(Op.NOT, x, logic_not, dense=True)

# Capabilities shared by floats and Scalars, used by the generic matrix code.

def is_zero(x):
    if isinstance(x, Scalar):
        return x.is_zero()
    return x == 0

def is_one(x):
    if isinstance(x, Scalar):
        return x.is_one()
    return x == 1

def is_minus_one(x):
    if isinstance(x, Scalar):
        return x.is_minus_one()
    return x == -1

def is_constant(x):
    if isinstance(x, Scalar):
        return x.is_constant()
    return True

def is_almost_zero(x, tol):
    if isinstance(x, Scalar):
        return x.is_almost_zero(tol)
    return abs(x) <= tol

def is_integer(x):
    if isinstance(x, Scalar):
        return x.is_integer()
    return float(x).is_integer()

def is_regular(x):
    if isinstance(x, Scalar):
        return x.is_regular()
    return math.isfinite(x)

# Numeric evaluation and substitution, both iterative over the DAG.

def _postorder(roots, done):
    order = []
    stack = [(node, False) for node in roots]
    while stack:
        node, expanded = stack.pop()
        if node in done:
            continue
        if expanded:
            done[node] = None
            order.append(node)
        else:
            stack.append((node, True))
            for dep in node.deps():
                if dep not in done:
                    stack.append((dep, False))
    return order

def evaluate(expr, values=None):
    known : Dict[Node, float] = {}
    for key, value in (values or {}).items():
        known[convert(key).node] = float(value)
    if isinstance(expr, Compound):
        return expr.distribute(lambda e: _evaluate(e, known), dense=False)
    return _evaluate(expr, known)

def _evaluate(expr, known):
    if not isinstance(expr, Scalar):
        return float(expr)
    seen = dict.fromkeys(known)
    for node in _postorder([expr.node], seen):
        known[node] = node.evaluate(known)
    return known[expr.node]

def substitute(expr, values):
    built : Dict[Node, Any] = {}
    for key, value in values.items():
        built[convert(key).node] = convert(value)
    if isinstance(expr, Compound):
        return expr.distribute(lambda e: _substitute(e, built), dense=False)
    return _substitute(expr, built)

def _substitute(expr, built):
    if not isinstance(expr, Scalar):
        return expr
    seen = dict.fromkeys(built)
    for node in _postorder([expr.node], seen):
        if isinstance(node, Unary):
            built[node] = unary_op(node.op, built[node.arg])
        elif isinstance(node, Binary):
            built[node] = binary_op(node.op, built[node.lhs], built[node.rhs])
        else:
            built[node] = Scalar(node)
    return built[expr.node]
