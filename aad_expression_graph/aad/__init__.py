# aad/__init__.py
# Reverse-mode automatic differentiation over an expression graph

from .core.config import GraphConfig
from .core.errors import (
    DuplicateNameError,
    EmptyGraphError,
    ExpressionGraphError,
    GraphMismatchError,
    NameNotFoundError,
    UninitializedAccessError,
)
from .core.expr import Expr
from .core.graph import ExpressionGraph, use_graph
from .core.graph_utils import get_graph_stats, print_graph_summary
from .core.log import setup_logging
from .core.seeds import grad, grads, numeric_grad, value

# Operator nodes
from . import ops

__all__ = [
    # Core
    'ExpressionGraph',
    'Expr',
    'use_graph',
    'GraphConfig',
    # Errors
    'ExpressionGraphError',
    'NameNotFoundError',
    'DuplicateNameError',
    'UninitializedAccessError',
    'EmptyGraphError',
    'GraphMismatchError',
    # Helpers
    'grad',
    'grads',
    'numeric_grad',
    'value',
    'get_graph_stats',
    'print_graph_summary',
    'setup_logging',
    'ops',
]
