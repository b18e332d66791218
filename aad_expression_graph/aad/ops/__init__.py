# aad/ops/__init__.py

# Operator nodes; Expr's Python operators route to the arithmetic ones
from . import arithmetic
from . import transcendental
from . import special

# Convenience re-exports so users can do: from aad.ops import mul, exp, ...
from .arithmetic import add, sub, mul, div, neg, pow, dot
from .transcendental import exp, log, sqrt, tanh, erf
from .special import sigmoid, logit, relu, norm_cdf, softmax, sum, mean, cross_entropy

__all__ = [
    "add", "sub", "mul", "div", "neg", "pow", "dot",
    "exp", "log", "sqrt", "tanh", "erf",
    "sigmoid", "logit", "relu", "norm_cdf", "softmax", "sum", "mean", "cross_entropy",
]
