# aad/core/expr.py
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Tuple

import numpy as np

from .node import InputNode, Node, ParamNode

if TYPE_CHECKING:
    from .graph import ExpressionGraph


class Expr:
    """
    Handle to one node of an ExpressionGraph.

    Several handles may share a node (the one returned by a construction call,
    the one kept in the named registry, ...); the graph's stack always holds the
    node too, so a node lives at least as long as its graph. Two handles are
    equal when they refer to the same node.

    Attributes
    ----------
    val  : np.ndarray
        Current value; valid after forward(). Assigning to it feeds an input or
        overwrites a parameter (the node's own forward() leaves it untouched).
    grad : np.ndarray
        Current adjoint; valid after backward().
    """

    __array_priority__ = 1000  # ensures NumPy defers to Expr's reflected operators

    def __init__(self, graph: "ExpressionGraph", node: Node):
        self._graph = graph
        self._node = node

    @property
    def graph(self) -> "ExpressionGraph":
        return self._graph

    @property
    def node(self) -> Node:
        return self._node

    @property
    def index(self) -> Optional[int]:
        return self._node.index

    @property
    def name(self) -> Optional[str]:
        return self._node.name

    @property
    def shape(self) -> Optional[Tuple[Optional[int], ...]]:
        return self._node.shape

    @property
    def val(self) -> np.ndarray:
        return self._node.val

    @val.setter
    def val(self, tensor: Any) -> None:
        self.set_val(tensor)

    @property
    def grad(self) -> np.ndarray:
        return self._node.adj

    def set_val(self, tensor: Any) -> "Expr":
        """Feed an input or overwrite a parameter; returns self so calls can be chained."""
        if not isinstance(self._node, (InputNode, ParamNode)):
            raise TypeError(
                f"Only input and parameter nodes accept values, not {self._node.op_tag!r}"
            )
        self._node.set_val(tensor)
        return self

    def debug(self) -> str:
        return self._node.graphviz()

    def __eq__(self, other):
        if not isinstance(other, Expr):
            return NotImplemented
        return self._node is other._node

    def __ne__(self, other):
        if not isinstance(other, Expr):
            return NotImplemented
        return self._node is not other._node

    def __hash__(self):
        return id(self._node)

    def __repr__(self):
        return f"Expr({self._node.op_tag}, index={self.index}, shape={self.shape}, name={self.name!r})"

    # Operator overloading; each builds a new operator node on the owning graph
    def __add__(self, other):
        from ..ops.arithmetic import add
        return add(self, other)

    def __radd__(self, other):
        from ..ops.arithmetic import add
        return add(other, self)

    def __sub__(self, other):
        from ..ops.arithmetic import sub
        return sub(self, other)

    def __rsub__(self, other):
        from ..ops.arithmetic import sub
        return sub(other, self)

    def __mul__(self, other):
        from ..ops.arithmetic import mul
        return mul(self, other)

    def __rmul__(self, other):
        from ..ops.arithmetic import mul
        return mul(other, self)

    def __truediv__(self, other):
        from ..ops.arithmetic import div
        return div(self, other)

    def __rtruediv__(self, other):
        from ..ops.arithmetic import div
        return div(other, self)

    def __neg__(self):
        from ..ops.arithmetic import neg
        return neg(self)

    def __pow__(self, other):
        from ..ops.arithmetic import pow
        return pow(self, other)

    def __rpow__(self, other):
        from ..ops.arithmetic import pow
        return pow(other, self)

    def __matmul__(self, other):
        from ..ops.arithmetic import dot
        return dot(self, other)

    def __rmatmul__(self, other):
        from ..ops.arithmetic import dot
        return dot(other, self)

    def sum(self, axis: Optional[int] = None, keepdims: bool = False) -> "Expr":
        from ..ops.special import sum
        return sum(self, axis=axis, keepdims=keepdims)

    def mean(self, axis: Optional[int] = None, keepdims: bool = False) -> "Expr":
        from ..ops.special import mean
        return mean(self, axis=axis, keepdims=keepdims)
