from symalg.expressions import sym, sin, cos, sq, zero, evaluate, substitute
from symalg.common import simplification
from symalg.matrix import Matrix
from symalg.solve import det, inv, solve, qr, nullspace, pinv
from symalg import nodes, tools
import numpy as np
import logging
import sys

logging.basicConfig(
    level=logging.DEBUG if "-v" in sys.argv[1:] else logging.INFO,
    format="%(name)s: %(message)s")
log = logging.getLogger("demo")

def show(title, value):
    print(f"{title:>28}  {value}")

x = sym("x")
y = sym("y")

print("-- simplification")
show("(x + 0) * 1 - x", (x + 0) * 1 - x)
show("x / x", x / x)
show("-(-x)", -(-x))
show("sin(y)^2 + cos(y)^2", sq(sin(y)) + sq(cos(y)))
show("0.5*x + 0.5*x", 0.5 * x + 0.5 * x)
show("x ** 2", x ** 2)
show("x ** 3", x ** 3)
with simplification(False):
    show("(x + 0) * 1 (raw)", (x + 0) * 1)
show("is zero singleton", ((x + 0) * 1 - x).node is zero.node)

print("-- evaluation")
f = sin(x) * y + x ** 2
show("f", f)
show("f(x=1, y=2)", evaluate(f, {x: 1.0, y: 2.0}))
show("f[y := x]", substitute(f, {y: x}))

print("-- symbolic matrices")
a = Matrix.sym("a", 2, 2)
show("A", a)
show("det(A)", det(a))
show("inv(A)", inv(a))

print("-- numeric linear algebra")
rng = np.random.default_rng(0)
m = Matrix.from_array(rng.normal(size=(5, 5)))
m[4, 0] = 0.0
m = m.sparsify()
b = Matrix.column([1.0, 2.0, 3.0, 4.0, 5.0])
sol = solve(m, b)
show("|A x - b|", tools.norm_2(m @ sol - b))
show("det(A) vs numpy", f"{det(m):.6f} {np.linalg.det(m.to_array()):.6f}")
q, r = qr(m)
show("|Q R - A|", np.abs((q @ r).to_array() - m.to_array()).max())
w = Matrix.from_array(rng.normal(size=(2, 4)))
show("|A N| (nullspace)", np.abs((w @ nullspace(w)).to_array()).max())
show("|A A+ A - A|", np.abs((w @ pinv(w) @ w).to_array() - w.to_array()).max())

log.info("%d expression nodes alive", nodes.stats.live)
