# aad/ops/special.py
from typing import Optional, Tuple

import numpy as np
from scipy.special import expit, logsumexp, ndtr

from ..core.node import OperatorNode
from .arithmetic import _push, _unary

SQRT_TWO_PI = np.sqrt(2.0 * np.pi)


def norm_pdf(x):
    return np.exp(-0.5 * x * x) / SQRT_TWO_PI


def _dsigmoid(a):
    s = expit(a)
    return s * (1.0 - s)


def sigmoid(x, name=None):
    return _unary(x, expit, _dsigmoid, "sigmoid", name)


logit = sigmoid


def relu(x, name=None):
    return _unary(x, lambda a: np.maximum(a, 0.0), lambda a: (a > 0).astype(float), "relu", name)


def norm_cdf(x, name=None):
    """Standard normal CDF N(x); local partial dN/dx = phi(x)."""
    return _unary(x, ndtr, norm_pdf, "norm_cdf", name)


class ReduceNode(OperatorNode):
    """Sum over `axis` (all axes when None), optionally divided by the element count."""

    def __init__(self, child, axis: Optional[int] = None, keepdims: bool = False,
                 average: bool = False, name: Optional[str] = None):
        super().__init__(child, name=name)
        self.op_tag = "mean" if average else "sum"
        self.axis = axis
        self.keepdims = keepdims
        self.average = average

    def _axes(self, ndim: int) -> Tuple[int, ...]:
        if self.axis is None:
            return tuple(range(ndim))
        if not -ndim <= self.axis < ndim:
            raise ValueError(f"{self.op_tag}: axis {self.axis} out of range for {ndim} dimensions")
        return (self.axis % ndim,)

    def infer_shape(self, shape):
        axes = self._axes(len(shape))
        if self.keepdims:
            return tuple(1 if i in axes else d for i, d in enumerate(shape))
        return tuple(d for i, d in enumerate(shape) if i not in axes)

    def compute(self, a):
        axes = self._axes(a.ndim)
        out = np.sum(a, axis=axes, keepdims=self.keepdims)
        if self.average:
            out = out / self._count(a.shape, axes)
        return out

    def local_grads(self, adj, a):
        axes = self._axes(a.ndim)
        grad = adj if self.keepdims else np.expand_dims(adj, axes)
        grad = np.broadcast_to(grad, a.shape)
        if self.average:
            grad = grad / self._count(a.shape, axes)
        return [grad]

    @staticmethod
    def _count(shape, axes) -> int:
        return int(np.prod([shape[i] for i in axes]))


def sum(x, axis=None, keepdims=False, name=None):
    return _push(lambda a, name: ReduceNode(a, axis=axis, keepdims=keepdims, name=name), x, name=name)


def mean(x, axis=None, keepdims=False, name=None):
    return _push(lambda a, name: ReduceNode(a, axis=axis, keepdims=keepdims, average=True, name=name),
                 x, name=name)


class SoftmaxNode(OperatorNode):
    """Softmax over the last axis."""
    op_tag = "softmax"

    def compute(self, a):
        return np.exp(a - logsumexp(a, axis=-1, keepdims=True))

    def local_grads(self, adj, a):
        s = self._val
        return [s * (adj - np.sum(adj * s, axis=-1, keepdims=True))]


def softmax(x, name=None):
    return _push(SoftmaxNode, x, name=name)


class CrossEntropyNode(OperatorNode):
    """
    Softmax cross-entropy over the last axis:
        out[...] = -sum_k labels[..., k] * log_softmax(logits)[..., k]
    Output drops the last axis (one loss per row).
    """
    op_tag = "cross_entropy"

    def infer_shape(self, logits, labels):
        if tuple(logits) != tuple(labels) or len(logits) == 0:
            raise ValueError(f"cross_entropy: logits {logits} and labels {labels} must share a non-scalar shape")
        return tuple(logits[:-1])

    @staticmethod
    def _log_softmax(a):
        return a - logsumexp(a, axis=-1, keepdims=True)

    def compute(self, logits, labels):
        return -np.sum(labels * self._log_softmax(logits), axis=-1)

    def local_grads(self, adj, logits, labels):
        lsm = self._log_softmax(logits)
        g = np.expand_dims(adj, -1)
        d_logits = np.exp(lsm) * np.sum(labels, axis=-1, keepdims=True) - labels
        return [g * d_logits, g * -lsm]


def cross_entropy(logits, labels, name=None):
    return _push(CrossEntropyNode, logits, labels, name=name)
