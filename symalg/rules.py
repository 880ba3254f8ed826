from .nodes import Op
from .common import options
from . import expressions as ex

# One ordered list of rewrites per operator, tried at construction time of
# a new node. The first rule returning something other than None wins. A
# rule may only hand back an existing operand, a singleton, or a result
# that costs at most one new node, and never rewrites existing children.

RULES = {}

def ruleset(*ops):
    def _decorator_(fn):
        for op in ops:
            RULES.setdefault(op, []).append(fn)
        return fn
    return _decorator_

def simplify(op, *args):
    for rule in RULES.get(op, ()):
        result = rule(*args)
        if result is not None:
            return result
    return None

def same(x, y):
    return ex.is_equal(x, y, options.eq_depth)

def is_value(x, value):
    return x.is_constant() and x.value == value

# x + y

@ruleset(Op.ADD)
def add_zero_lhs(x, y):
    if x.is_zero():
        return y

@ruleset(Op.ADD)
def add_zero_rhs(x, y):
    if y.is_zero():
        return x

@ruleset(Op.ADD)
def add_neg_rhs(x, y):   # x + (-y) -> x - y
    if y.is_op(Op.NEG):
        return ex.sub(x, y.dep())

@ruleset(Op.ADD)
def add_neg_lhs(x, y):   # (-x) + y -> y - x
    if x.is_op(Op.NEG):
        return ex.sub(y, x.dep())

@ruleset(Op.ADD)
def add_halves(x, y):    # 0.5*x + 0.5*x -> x
    if (x.is_op(Op.MUL) and y.is_op(Op.MUL)
            and is_value(x.dep(0), 0.5) and is_value(y.dep(0), 0.5)
            and same(x.dep(1), y.dep(1))):
        return x.dep(1)

@ruleset(Op.ADD)
def add_half_quotients(x, y):   # x/2 + x/2 -> x
    if (x.is_op(Op.DIV) and y.is_op(Op.DIV)
            and is_value(x.dep(1), 2) and is_value(y.dep(1), 2)
            and same(x.dep(0), y.dep(0))):
        return x.dep(0)

@ruleset(Op.ADD)
def add_undo_sub_lhs(x, y):     # (a - y) + y -> a
    if x.is_op(Op.SUB) and same(x.dep(1), y):
        return x.dep(0)

@ruleset(Op.ADD)
def add_undo_sub_rhs(x, y):     # x + (a - x) -> a
    if y.is_op(Op.SUB) and same(x, y.dep(1)):
        return y.dep(0)

@ruleset(Op.ADD)
def add_pythagoras(x, y):       # sin(a)^2 + cos(a)^2 -> 1
    if x.is_op(Op.SQ) and y.is_op(Op.SQ):
        a = x.dep()
        b = y.dep()
        if (((a.is_op(Op.SIN) and b.is_op(Op.COS)) or (a.is_op(Op.COS) and b.is_op(Op.SIN)))
                and same(a.dep(), b.dep())):
            return ex.one

# x - y

@ruleset(Op.SUB)
def sub_zero_rhs(x, y):
    if y.is_zero():
        return x

@ruleset(Op.SUB)
def sub_zero_lhs(x, y):
    if x.is_zero():
        return ex.neg(y)

@ruleset(Op.SUB)
def sub_self(x, y):
    if same(x, y):
        return ex.zero

@ruleset(Op.SUB)
def sub_neg_rhs(x, y):   # x - (-y) -> x + y
    if y.is_op(Op.NEG):
        return ex.add(x, y.dep())

@ruleset(Op.SUB)
def sub_undo_add(x, y):  # (a + y) - y -> a, (y + b) - y -> b
    if x.is_op(Op.ADD):
        if same(x.dep(1), y):
            return x.dep(0)
        if same(x.dep(0), y):
            return x.dep(1)

@ruleset(Op.SUB)
def sub_from_add(x, y):  # x - (a + x) -> -a, x - (x + b) -> -b
    if y.is_op(Op.ADD):
        if same(x, y.dep(1)):
            return ex.neg(y.dep(0))
        if same(x, y.dep(0)):
            return ex.neg(y.dep(1))

# x * y

@ruleset(Op.MUL)
def mul_square(x, y):
    if same(x, y):
        return ex.sq(x)

@ruleset(Op.MUL)
def mul_constant_first(x, y):
    if not x.is_constant() and y.is_constant():
        return ex.mul(y, x)

@ruleset(Op.MUL)
def mul_zero(x, y):
    if x.is_zero() or y.is_zero():
        return ex.zero

@ruleset(Op.MUL)
def mul_one(x, y):
    if x.is_one():
        return y
    if y.is_one():
        return x

@ruleset(Op.MUL)
def mul_minus_one(x, y):
    if y.is_minus_one():
        return ex.neg(x)
    if x.is_minus_one():
        return ex.neg(y)

@ruleset(Op.MUL)
def mul_inverse(x, y):   # x * inv(b) -> x / b
    if y.is_op(Op.INV):
        return ex.div(x, y.dep())
    if x.is_op(Op.INV):
        return ex.div(y, x.dep())

@ruleset(Op.MUL)
def mul_reciprocal_constant(x, y):   # 5 * (0.2 * z) -> z, 5 * (z / 5) -> z
    if x.is_constant():
        if y.is_op(Op.MUL) and y.dep(0).is_constant() and x.value * y.dep(0).value == 1:
            return y.dep(1)
        if y.is_op(Op.DIV) and y.dep(1).is_constant() and x.value == y.dep(1).value:
            return y.dep(0)

@ruleset(Op.MUL)
def mul_cancel_quotient(x, y):   # (a / y) * y -> a, x * (a / x) -> a
    if x.is_op(Op.DIV) and same(x.dep(1), y):
        return x.dep(0)
    if y.is_op(Op.DIV) and same(y.dep(1), x):
        return y.dep(0)

@ruleset(Op.MUL)
def mul_negatives(x, y):   # (-a) * (-b) -> a * b
    if x.is_op(Op.NEG) and y.is_op(Op.NEG):
        return ex.mul(x.dep(), y.dep())

# x / y

@ruleset(Op.DIV)
def div_by_zero(x, y):
    if y.is_zero():
        return ex.nan

@ruleset(Op.DIV)
def div_zero(x, y):
    if x.is_zero():
        return ex.zero

@ruleset(Op.DIV)
def div_by_one(x, y):
    if y.is_one():
        return x
    if y.is_minus_one():
        return ex.neg(x)

@ruleset(Op.DIV)
def div_self(x, y):
    if same(x, y):
        return ex.one

@ruleset(Op.DIV)
def div_doubled_by_two(x, y):   # (a + a) / 2 -> a
    if x.is_doubled() and y.is_constant() and y.value == 2:
        return x.dep(0)

@ruleset(Op.DIV)
def div_cancel_factor(x, y):    # (y * b) / y -> b, (a * y) / y -> a
    if x.is_op(Op.MUL):
        if same(y, x.dep(0)):
            return x.dep(1)
        if same(y, x.dep(1)):
            return x.dep(0)

@ruleset(Op.DIV)
def div_one(x, y):
    if x.is_one():
        return ex.inv(y)

@ruleset(Op.DIV)
def div_by_inverse(x, y):       # x / inv(b) -> x * b
    if y.is_op(Op.INV):
        return ex.mul(x, y.dep())

@ruleset(Op.DIV)
def div_doubled(x, y):          # (a + a) / (b + b) -> a / b
    if x.is_doubled() and y.is_doubled():
        return ex.div(x.dep(0), y.dep(0))

@ruleset(Op.DIV)
def div_reciprocal_constant(x, y):   # (a / 5) / 0.2 -> a
    if (y.is_constant() and x.is_op(Op.DIV) and x.dep(1).is_constant()
            and y.value * x.dep(1).value == 1):
        return x.dep(0)

@ruleset(Op.DIV)
def div_by_multiple(x, y):      # x / (c * x) -> 1 / c
    if y.is_op(Op.MUL) and same(y.dep(1), x):
        return ex.binary(Op.DIV, ex.one, y.dep(0))

@ruleset(Op.DIV)
def div_negated(x, y):          # (-x) / x -> -1, x / (-x) -> -1, (-x) / (-x) -> 1
    if x.is_op(Op.NEG) and same(x.dep(), y):
        return ex.minus_one
    if y.is_op(Op.NEG) and same(y.dep(), x):
        return ex.minus_one
    if x.is_op(Op.NEG) and y.is_op(Op.NEG) and same(x.dep(), y.dep()):
        return ex.one

@ruleset(Op.DIV)
def div_into_quotient(x, y):    # (y / b) / y -> 1 / b
    if x.is_op(Op.DIV) and same(y, x.dep(0)):
        return ex.inv(x.dep(1))

@ruleset(Op.DIV)
def div_negatives(x, y):        # (-a) / (-b) -> a / b
    if x.is_op(Op.NEG) and y.is_op(Op.NEG):
        return ex.div(x.dep(), y.dep())

# x ** n

@ruleset(Op.POW)
def pow_constant(x, n):
    if not n.is_constant():
        return None
    if n.is_zero():
        return ex.one
    if n.is_one():
        return x
    if n.is_integer() and n.int_value == 2:
        return ex.sq(x)
    if n.is_minus_one():
        return ex.inv(x)
    if n.value == 0.5:
        return ex.sqrt(x)
    return ex.binary(Op.CONSTPOW, x, n)

@ruleset(Op.CONSTPOW)
def constpow_trivial(x, n):
    if n.is_zero():
        return ex.one
    if n.is_one():
        return x

# Comparisons and logic

@ruleset(Op.LE)
def le_known(x, y):
    if (y - x).is_nonnegative():
        return ex.one

@ruleset(Op.LT)
def lt_known(x, y):
    if (x - y).is_nonnegative():
        return ex.zero

@ruleset(Op.EQ)
def eq_identical(x, y):
    if ex.is_equal(x, y):
        return ex.one

@ruleset(Op.NE)
def ne_identical(x, y):
    if ex.is_equal(x, y):
        return ex.zero

@ruleset(Op.IF_ELSE_ZERO)
def if_else_zero_known(c, x):
    if x.is_zero():
        return x
    if c.is_constant():
        return x if not c.is_zero() else ex.zero

@ruleset(Op.NOT)
def not_not(x):
    if x.is_op(Op.NOT):
        return x.dep()

# Unary operations

@ruleset(Op.NEG)
def neg_neg(x):
    if x.is_op(Op.NEG):
        return x.dep()

@ruleset(Op.SQ)
def sq_sqrt(x):
    if x.is_op(Op.SQRT):
        return x.dep()

@ruleset(Op.SQ)
def sq_neg(x):
    if x.is_op(Op.NEG):
        return ex.sq(x.dep())

@ruleset(Op.SQRT)
def sqrt_sq(x):
    if x.is_op(Op.SQ):
        return ex.fabs(x.dep())

@ruleset(Op.FABS)
def fabs_nonnegative_op(x):
    if x.is_op(Op.FABS) or x.is_op(Op.SQ):
        return x

@ruleset(Op.INV)
def inv_inv(x):
    if x.is_op(Op.INV):
        return x.dep()

