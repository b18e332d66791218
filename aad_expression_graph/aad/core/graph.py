# aad/core/graph.py
from __future__ import annotations

import logging
import numbers
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from . import engine
from .config import GraphConfig
from .errors import (
    DuplicateNameError,
    EmptyGraphError,
    GraphMismatchError,
    NameNotFoundError,
    UninitializedAccessError,
)
from .expr import Expr
from .node import ConstantNode, InputNode, Node, ParamNode

logger = logging.getLogger(__name__)


class ExpressionGraph:
    """
    Owns a stack of nodes in construction order and runs the passes over it.

    Nodes are only ever appended, and a node can only be built from handles
    that already exist, so the stack is always a valid topological order.

        g = ExpressionGraph()
        a = g.param(value=2.0, name="a")
        b = g.param(value=3.0, name="b")
        c = a * b
        g.backprop(1)          # c.val == 6, a.grad == 3, b.grad == 2

    Besides the stack the graph keeps a named-node registry and the ordered
    lists of declared inputs and parameters, for training code to feed and update.
    """

    def __init__(self, config: Optional[GraphConfig] = None):
        self.config = config or GraphConfig()
        self._nodes: List[Node] = []
        self._named: Dict[str, Expr] = {}
        self._inputs: List[Expr] = []
        self._params: List[Expr] = []
        # Number of nodes covered by the last complete forward pass
        self._evaluated: Optional[int] = None
        self._batch_size: Optional[int] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: str) -> bool:
        return self.has_node(name)

    def __repr__(self):
        return (f"ExpressionGraph(nodes={len(self._nodes)}, inputs={len(self._inputs)}, "
                f"params={len(self._params)}, named={len(self._named)})")

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes)

    @property
    def inputs(self) -> Tuple[Expr, ...]:
        return tuple(self._inputs)

    @property
    def params(self) -> Tuple[Expr, ...]:
        return tuple(self._params)

    @property
    def batch_size(self) -> Optional[int]:
        """Batch extent of the last complete forward pass."""
        return self._batch_size

    # ------------------------------------------------------------------ #
    # Passes
    # ------------------------------------------------------------------ #
    def forward(self, batch_size: int) -> None:
        """
        Allocate every node for `batch_size`, then compute every value in stack order.

        Allocation runs over the whole stack before any node computes, so every
        node's storage exists before anyone reads it.
        """
        if isinstance(batch_size, (bool, np.bool_)) or not isinstance(batch_size, numbers.Integral) \
                or batch_size < 1:
            raise ValueError(f"batch_size must be a positive int, got {batch_size!r}")
        batch_size = int(batch_size)
        self._evaluated = None
        logger.debug("forward: %d nodes, batch extent %d", len(self._nodes), batch_size)
        engine.allocate_all(self._nodes, batch_size)
        engine.forward_all(self._nodes)
        if self.config.check_finite:
            engine.check_finite(self._nodes)
        self._evaluated = len(self._nodes)
        self._batch_size = batch_size

    def backward(self, output: Optional[Expr] = None) -> None:
        """
        Zero every adjoint, seed `output` (default: the last node pushed) with 1,
        and propagate gradients in reverse stack order.

        Afterwards each node's adjoint is the total derivative of the output
        with respect to that node's value.
        """
        if not self._nodes:
            raise EmptyGraphError("backward() on an empty graph: there is no output to seed")
        if self._evaluated is None:
            raise UninitializedAccessError("backward() called before forward()")
        if self._evaluated != len(self._nodes):
            raise UninitializedAccessError(
                "Nodes were added since the last forward(); run forward() again",
                {"evaluated": self._evaluated, "nodes": len(self._nodes)},
            )
        out = self._nodes[-1] if output is None else self._own(output).node
        logger.debug("backward: seeding node %d of %d", out.index, len(self._nodes))
        engine.zero_adjoints(self._nodes)
        engine.reverse(self._nodes, out)

    def backprop(self, batch_size: int, output: Optional[Expr] = None) -> None:
        """One training step's evaluation: forward(batch_size) then backward(output)."""
        if not self._nodes:
            raise EmptyGraphError("backprop() on an empty graph: there is no output to seed")
        self.forward(batch_size)
        self.backward(output)

    def graphviz(self) -> str:
        from .graph_utils import graphviz
        return graphviz(self)

    # ------------------------------------------------------------------ #
    # Node construction
    # ------------------------------------------------------------------ #
    def add_node(self, node: Node) -> Expr:
        """
        Push `node` on the stack and return a handle to it.

        Its children must already be on this graph; this is what keeps the
        stack topologically ordered.
        """
        if node.graph is not None:
            raise ValueError(f"{node!r} is already part of a graph")
        for child in node.children:
            if child.graph is not self:
                raise GraphMismatchError(
                    f"Operand {child.label()} of {node.op_tag!r} belongs to a different graph"
                )
        node.graph = self
        node.index = len(self._nodes)
        node.dtype = self.config.dtype
        expr = Expr(self, node)
        try:
            if isinstance(node, ParamNode):
                node.materialize()
            if node.name is not None:
                self.add_named_node(expr, node.name)
        except Exception:
            # Leave the stack as it was
            node.graph = node.index = None
            raise
        self._nodes.append(node)
        return expr

    def input(self, shape: Any, name: Optional[str] = None) -> Expr:
        """
        New input node, recorded in `inputs`.

        A leading None in `shape` stands for the batch extent. The node is not
        wired to anything; use the returned handle as an operand to do that.
        """
        expr = self.add_node(InputNode(shape, name=name))
        self._inputs.append(expr)
        return expr

    def param(self, shape: Any = None, value: Any = None,
              init: Optional[Callable[[Tuple[int, ...]], Any]] = None,
              name: Optional[str] = None) -> Expr:
        """
        New parameter node, recorded in `params`.

        The initial value is `value`, else `init(shape)`, else zeros. The node is
        not wired to anything; use the returned handle as an operand to do that.
        """
        expr = self.add_node(ParamNode(shape, value=value, init=init, name=name))
        self._params.append(expr)
        return expr

    def constant(self, shape: Any = None, value: Any = 0.0, name: Optional[str] = None) -> Expr:
        """New constant node; a scalar `value` fills the whole (resolved) shape."""
        return self.add_node(ConstantNode(shape, value=value, name=name))

    def ones(self, shape: Any = None, name: Optional[str] = None) -> Expr:
        return self.constant(shape, value=1.0, name=name)

    def zeros(self, shape: Any = None, name: Optional[str] = None) -> Expr:
        return self.constant(shape, value=0.0, name=name)

    # ------------------------------------------------------------------ #
    # Named nodes
    # ------------------------------------------------------------------ #
    def __getitem__(self, name: str) -> Expr:
        try:
            return self._named[name]
        except KeyError:
            raise NameNotFoundError(name) from None

    def has_node(self, name: str) -> bool:
        return name in self._named

    def add_named_node(self, expr: Expr, name: str) -> None:
        """
        Register `expr` under `name`.

        Binding the same node to the same name again does nothing. Binding a
        different node follows config.duplicate_names ("error", "keep_first"
        or "replace").
        """
        self._own(expr)
        existing = self._named.get(name)
        if existing is None:
            self._named[name] = expr
            logger.debug("named node %r -> %d", name, expr.index)
            return
        if existing == expr:
            return

        policy = self.config.duplicate_names
        if policy == "error":
            raise DuplicateNameError(name, existing.index, expr.index)
        if policy == "replace":
            logger.debug("named node %r rebound %d -> %d", name, existing.index, expr.index)
            self._named[name] = expr
        else:
            logger.debug("named node %r kept at %d, ignoring %d", name, existing.index, expr.index)

    def _own(self, expr: Expr) -> Expr:
        if not isinstance(expr, Expr):
            raise TypeError(f"Expected an Expr handle, got {type(expr)}")
        if expr.graph is not self:
            raise GraphMismatchError(f"{expr!r} belongs to a different graph")
        return expr


# Graph used by operations whose operands are all plain numbers
_current_graph: Optional[ExpressionGraph] = None


def current_graph() -> Optional[ExpressionGraph]:
    return _current_graph


@contextmanager
def use_graph(graph: Optional[ExpressionGraph] = None):
    """
    Context manager making `graph` (or a fresh one) current:
        with use_graph() as g:
            x = g.param(value=1.5)
            ...
            g.backprop(1)
    """
    global _current_graph
    prev = _current_graph
    try:
        _current_graph = graph if graph is not None else ExpressionGraph()
        yield _current_graph
    finally:
        _current_graph = prev
