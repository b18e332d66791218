# aad/ops/transcendental.py
import numpy as np
from scipy.special import erf as scipy_erf

from .arithmetic import _unary


def exp(x, name=None):
    return _unary(x, np.exp, np.exp, "exp", name)


def log(x, name=None):
    return _unary(x, np.log, lambda a: 1.0 / a, "log", name)


def sqrt(x, name=None):
    return _unary(x, np.sqrt, lambda a: 0.5 / np.sqrt(a), "sqrt", name)


def tanh(x, name=None):
    return _unary(x, np.tanh, lambda a: 1.0 - np.square(np.tanh(a)), "tanh", name)


def erf(x, name=None):
    """
    Error function: erf(x) = (2/√π) ∫₀ˣ e^(-t²) dt

    Derivative: d/dx erf(x) = (2/√π) * e^(-x²)
    """
    return _unary(x, scipy_erf, lambda a: (2.0 / np.sqrt(np.pi)) * np.exp(-np.square(a)), "erf", name)
