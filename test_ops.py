"""
Operator nodes: values, and reverse-pass gradients against finite differences.
"""

import numpy as np
import pytest
from scipy.special import erf as scipy_erf

from aad_expression_graph.aad import ExpressionGraph, grad, grads, numeric_grad, use_graph, value
from aad_expression_graph.aad.core.graph import current_graph
from aad_expression_graph.aad.ops import (
    cross_entropy,
    erf,
    exp,
    log,
    mean,
    norm_cdf,
    relu,
    logit,
    sigmoid,
    softmax,
    sqrt,
    tanh,
)

X0 = np.array([[0.3, 1.2, 0.8], [1.7, 0.5, 2.1]])


def check(f, x0=X0, rtol=1e-5, atol=1e-7):
    np.testing.assert_allclose(grad(f, x0), numeric_grad(f, x0), rtol=rtol, atol=atol)


@pytest.mark.parametrize("f", [
    lambda x: (x + x * 2.0).sum(),
    lambda x: (1.0 - x).sum(),
    lambda x: ((x * x - 3.0) / (x + 2.0)).sum(),
    lambda x: (4.0 / x).sum(),
    lambda x: (-x * x).sum(),
    lambda x: (x ** 3.0).sum(),
    lambda x: (2.0 ** x).sum(),
    lambda x: (x ** x).sum(),
])
def test_arithmetic_gradients(f):
    check(f)


def test_pow_exponent_gradient_is_elementwise():
    # only the non-positive base has no log; its neighbour keeps a^b * log(a)
    g = ExpressionGraph()
    base = g.constant(value=[-2.0, 2.0])
    y = g.param(value=[2.0, 2.0])
    (base ** y).sum()
    g.backprop(1)
    np.testing.assert_allclose(y.grad, [0.0, 4.0 * np.log(2.0)])
    np.testing.assert_allclose(base.grad, [-4.0, 4.0])


@pytest.mark.parametrize("op", [exp, log, sqrt, tanh, erf, sigmoid, relu, norm_cdf])
def test_unary_gradients(op):
    check(lambda x: (op(x) * x).sum())


def test_logit_is_the_logistic_function():
    assert logit is sigmoid
    g = ExpressionGraph()
    x = g.param(value=[-1.0, 0.0, 2.0])
    y = logit(x)
    y.sum()
    g.backprop(1)
    s = 1.0 / (1.0 + np.exp(-np.array([-1.0, 0.0, 2.0])))
    np.testing.assert_allclose(y.val, s)
    np.testing.assert_allclose(x.grad, s * (1.0 - s))


def test_reductions():
    check(lambda x: (mean(x, axis=0) * np.array([1.0, 2.0, 3.0])).sum())
    check(lambda x: (x.sum(axis=1, keepdims=True) * x).sum())
    check(lambda x: x.mean())
    check(lambda x: (x.sum(axis=-1) ** 2.0).sum())


def test_softmax():
    weights = np.array([1.0, -2.0, 0.5])
    check(lambda x: (softmax(x) * weights).sum())

    g = ExpressionGraph()
    x = g.param(value=X0)
    s = softmax(x)
    g.forward(1)
    np.testing.assert_allclose(s.val.sum(axis=-1), [1.0, 1.0])


def test_cross_entropy():
    labels = np.array([[0.0, 1.0, 0.0], [0.2, 0.3, 0.5]])
    check(lambda x: cross_entropy(x, labels).mean())

    g = ExpressionGraph()
    x = g.param(value=X0)
    y = g.input((None, 3))
    y.val = labels
    loss = cross_entropy(x, y)
    total = loss.sum()
    g.backprop(2)

    log_softmax = X0 - np.log(np.exp(X0).sum(axis=-1, keepdims=True))
    np.testing.assert_allclose(loss.val, -(labels * log_softmax).sum(axis=-1))
    np.testing.assert_allclose(x.grad, np.exp(log_softmax) - labels)
    assert total.val == pytest.approx(loss.val.sum())


def test_dot():
    a0 = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    b0 = np.array([[0.5, -1.0], [2.0, 0.0], [1.0, 1.0]])
    out = grads(lambda v: (v["a"] @ v["b"]).sum(), {"a": a0, "b": b0})

    np.testing.assert_allclose(out["a"], np.ones((2, 2)) @ b0.T)
    np.testing.assert_allclose(out["b"], a0.T @ np.ones((2, 2)))

    g = ExpressionGraph()
    a = g.param(value=a0)
    a @ a
    with pytest.raises(ValueError):
        g.forward(1)


def test_broadcast_gradients_are_reduced():
    out = grads(lambda v: (v["x"] * v["b"] + v["c"]).sum(),
                {"x": X0, "b": [1.0, 2.0, 3.0], "c": [[1.0], [2.0]]})
    np.testing.assert_allclose(out["x"], np.tile([1.0, 2.0, 3.0], (2, 1)))
    np.testing.assert_allclose(out["b"], X0.sum(axis=0))
    np.testing.assert_allclose(out["c"], [[3.0], [3.0]])


def test_incompatible_shapes_fail_at_allocation():
    g = ExpressionGraph()
    a = g.param(value=np.zeros(3))
    b = g.param(value=np.zeros(4))
    a + b
    with pytest.raises(ValueError):
        g.forward(1)


def test_erf_value():
    g = ExpressionGraph()
    x = g.param(value=[0.1, 0.9])
    y = erf(x)
    g.forward(1)
    np.testing.assert_allclose(y.val, scipy_erf([0.1, 0.9]))


def test_scalar_helpers():
    assert grad(lambda x: x * x * x, 2.0) == pytest.approx(12.0)
    out = grads(lambda v: v["a"] * v["b"], {"a": 2.0, "b": 3.0})
    assert out == {"a": pytest.approx(3.0), "b": pytest.approx(2.0)}
    assert numeric_grad(lambda x: exp(x), 0.0) == pytest.approx(1.0)
    assert value(5.0) == 5.0
    with pytest.raises(ValueError):
        grad(lambda x: x * 2.0, [1.0, 2.0])


def test_use_graph_for_number_only_operations():
    with use_graph() as g:
        y = exp(0.0)
        assert y.graph is g
        g.forward(1)
        assert value(y) == pytest.approx(1.0)
    assert current_graph() is None

    with pytest.raises(ValueError):
        exp(0.0)
