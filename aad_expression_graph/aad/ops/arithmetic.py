# aad/ops/arithmetic.py
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from ..core.errors import GraphMismatchError
from ..core.expr import Expr
from ..core import graph as graph_mod  # Use module access for use_graph() compatibility
from ..core.node import OperatorNode


class ElementwiseNode(OperatorNode):
    """
    Generic element-wise primitive:
      - value          : out = f(*operands)
      - local partials : dfs[i](*operands) = d out / d operand_i
    Operands broadcast against each other; contributions are summed back over
    broadcast axes when accumulated.
    """

    def __init__(self, tag: str, f: Callable, dfs: Sequence[Callable], *children, name: Optional[str] = None):
        super().__init__(*children, name=name)
        self.op_tag = tag
        self.f = f
        self.dfs = tuple(dfs)

    def compute(self, *vals):
        return self.f(*vals)

    def local_grads(self, adj, *vals):
        # Accumulate: child.adj += out.adj * (d out / d child)
        return [adj * df(*vals) for df in self.dfs]


class DotNode(OperatorNode):
    """Matrix product of two 2-D operands: (m, k) @ (k, n) -> (m, n)."""
    op_tag = "dot"

    def infer_shape(self, a: Tuple[int, ...], b: Tuple[int, ...]) -> Tuple[int, ...]:
        if len(a) != 2 or len(b) != 2 or a[1] != b[0]:
            raise ValueError(f"dot: cannot multiply shapes {a} and {b}")
        return (a[0], b[1])

    def compute(self, a, b):
        return a @ b

    def local_grads(self, adj, a, b):
        return [adj @ b.T, a.T @ adj]


def _graph_of(*operands):
    """Graph shared by the Expr operands (or the current one if there are none)."""
    graphs = {id(x.graph): x.graph for x in operands if isinstance(x, Expr)}
    if len(graphs) > 1:
        raise GraphMismatchError("Operands belong to different graphs")
    if graphs:
        return next(iter(graphs.values()))
    current = graph_mod.current_graph()
    if current is None:
        raise ValueError("No Expr operand and no current graph; use `with use_graph():`")
    return current


def _as_expr(x, graph) -> Expr:
    """Ensure x is an Expr; otherwise push it as a constant node."""
    return x if isinstance(x, Expr) else graph.constant(value=x)


def _push(node_factory, *operands, name: Optional[str] = None) -> Expr:
    graph = _graph_of(*operands)
    exprs = [_as_expr(x, graph) for x in operands]
    return graph.add_node(node_factory(*[e.node for e in exprs], name=name))


def _binary(x, y, f, dfdx, dfdy, tag, name=None):
    return _push(lambda a, b, name: ElementwiseNode(tag, f, (dfdx, dfdy), a, b, name=name), x, y, name=name)


def _unary(x, f, dfdx, tag, name=None):
    return _push(lambda a, name: ElementwiseNode(tag, f, (dfdx,), a, name=name), x, name=name)


def add(x, y, name=None): return _binary(x, y, lambda a,b:a+b, lambda a,b:1.0, lambda a,b:1.0,           "add", name)
def sub(x, y, name=None): return _binary(x, y, lambda a,b:a-b, lambda a,b:1.0, lambda a,b:-1.0,          "sub", name)
def mul(x, y, name=None): return _binary(x, y, lambda a,b:a*b, lambda a,b:b,   lambda a,b:a,             "mul", name)
def div(x, y, name=None): return _binary(x, y, lambda a,b:a/b, lambda a,b:1.0/b, lambda a,b:-a/np.square(b), "div", name)


def neg(x, name=None):
    return _unary(x, lambda a: -a, lambda a: -1.0, "neg", name)


def _dpow_dexp(a, b):
    # d(a^b)/db = a^b * log(a), only defined where a > 0; zero elsewhere
    positive = a > 0
    return np.where(positive, np.power(a, b) * np.log(np.where(positive, a, 1.0)), 0.0)


def pow(x, y, name=None):
    """
    Power:
      out = x ** y
      d out/dx = y * x^(y-1)
      d out/dy = x^y * log(x)      (requires x > 0; zero elsewhere)
    """
    return _binary(x, y,
                   lambda a, b: np.power(a, b),
                   lambda a, b: b * np.power(a, b - 1.0),
                   _dpow_dexp,
                   "pow", name)


def dot(x, y, name=None):
    """Matrix product of two 2-D expressions."""
    return _push(DotNode, x, y, name=name)
