# aad/core/seeds.py

#-----------------------------------------------------------------------------
# We "plant" a seed (dy/dy = 1) at the scalar output and let gradients grow
# backwards through the graph.
#-----------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Callable, Dict, Union

import numpy as np

from .expr import Expr
from .graph import ExpressionGraph

Numeric = Union[float, np.ndarray]


def value(x: Any) -> Any:
    """Return the numeric value of an Expr; pass through plain numbers unchanged."""
    return x.val if isinstance(x, Expr) else x


def _unwrap(arr: np.ndarray) -> Numeric:
    return float(arr) if arr.ndim == 0 else np.array(arr)


def _run_scalar(graph: ExpressionGraph, y: Any, what: str) -> Expr:
    """Forward the graph and check that y is a scalar on it."""
    if not isinstance(y, Expr):
        y = graph.constant(value=y)
    graph.forward(1)
    if y.val.ndim != 0:
        raise ValueError(f"{what} expects scalar output, got shape {y.val.shape}.")
    return y


# ----------------------------- single-input grad ----------------------------- #
def grad(f: Callable[[Expr], Expr], x0: Numeric) -> Numeric:
    """
    Gradient of a scalar-output function y=f(x) at x0 (single input).
    Builds a fresh graph with x as its only parameter and runs one backprop.
    """
    graph = ExpressionGraph()
    x = graph.param(value=x0)
    y = _run_scalar(graph, f(x), "grad(f, x0)")
    graph.backward(y)
    return _unwrap(x.grad)


# ----------------------------- multi-input grads ----------------------------- #
def grads(f: Callable[[Dict[str, Expr]], Expr],
          inputs: Dict[str, Numeric]) -> Dict[str, Numeric]:
    """
    Gradient of a scalar-output function y=f(vars) w.r.t. ALL inputs (dict form).
    One backward pass yields every dy/dvar.

    Parameters
    ----------
    f       : function taking a dict {name: Expr} and returning a scalar Expr
    inputs  : dict {name: numeric}

    Returns
    -------
    dict {name: numeric}  # gradients in the same key order as `inputs`
    """
    graph = ExpressionGraph()
    xs = {k: graph.param(value=v, name=k) for k, v in inputs.items()}
    y = _run_scalar(graph, f(xs), "grads(f, inputs)")
    graph.backward(y)
    return {k: _unwrap(xs[k].grad) for k in inputs}


def evaluate(f: Callable[[Expr], Expr], x0: Numeric) -> float:
    """Value of the scalar function y=f(x) at x0, on a throwaway graph."""
    graph = ExpressionGraph()
    x = graph.param(value=x0)
    return float(_run_scalar(graph, f(x), "evaluate(f, x0)").val)


def numeric_grad(f: Callable[[Expr], Expr], x0: Numeric, eps: float = 1e-6) -> Numeric:
    """
    Central finite differences (f(x+eps) - f(x-eps)) / 2eps, element by element.
    Used to check the reverse pass.
    """
    x = np.array(x0, dtype=float)
    out = np.zeros_like(x)
    for idx in np.ndindex(x.shape):
        up = x.copy()
        down = x.copy()
        up[idx] += eps
        down[idx] -= eps
        out[idx] = (evaluate(f, up) - evaluate(f, down)) / (2.0 * eps)
    return _unwrap(out)
