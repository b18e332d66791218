# aad/core/__init__.py

"""
Core public API for the expression graph.

Exports:
    ExpressionGraph : Owns the node stack; builds nodes and runs forward/backward.
    Expr            : Handle to one node (value, gradient, Python operators).
    use_graph       : Context manager making a graph current for number-only operations.
    GraphConfig     : Storage dtype, duplicate-name policy, finite-value check.
    grad, grads     : Convenience: gradient of a scalar function on a fresh graph.
    numeric_grad    : Central finite differences, to check gradients.
    value           : Convenience: extract the value of an Expr.
"""

from .config import GraphConfig
from .errors import (
    DuplicateNameError,
    EmptyGraphError,
    ExpressionGraphError,
    GraphMismatchError,
    NameNotFoundError,
    UninitializedAccessError,
)
from .expr import Expr
from .graph import ExpressionGraph, current_graph, use_graph
from .node import ConstantNode, InputNode, Node, OperatorNode, ParamNode
from .seeds import grad, grads, numeric_grad, value

__all__ = [
    "ExpressionGraph", "Expr", "use_graph", "current_graph",
    "GraphConfig",
    "Node", "InputNode", "ParamNode", "ConstantNode", "OperatorNode",
    "ExpressionGraphError", "NameNotFoundError", "DuplicateNameError",
    "UninitializedAccessError", "EmptyGraphError", "GraphMismatchError",
    "grad", "grads", "numeric_grad", "value",
]
