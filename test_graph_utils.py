"""
Diagnostics, configuration and logging.
"""

import logging

import numpy as np
import pytest

from aad_expression_graph.aad import (
    ExpressionGraph,
    GraphConfig,
    get_graph_stats,
    print_graph_summary,
    setup_logging,
)
from aad_expression_graph.aad.ops import tanh


def build():
    g = ExpressionGraph()
    x = g.input((None, 2), name="x")
    w = g.param(value=np.ones((2, 1)), name="w")
    h = tanh(x @ w)
    loss = (h * h).mean()
    return g, x, w, loss


def test_graphviz_lists_nodes_output_first():
    g, x, w, loss = build()
    dot = g.graphviz()

    assert dot.startswith("digraph ExpressionGraph {\nrankdir=BT\n")
    assert dot.rstrip().endswith("}")
    assert f'"n{x.index}" -> "n{x.index + 2}"' in dot
    assert 'label="input x [None, 2]"' in dot
    assert 'label="param w [2, 1]"' in dot
    # reverse construction order: last node first
    assert dot.index(f'"n{loss.index}" [') < dot.index(f'"n{x.index}" [')


def test_graphviz_does_not_touch_values():
    g, x, w, loss = build()
    x.val = np.ones((3, 2))
    g.backprop(3)
    before = float(loss.val)
    g.graphviz()
    assert float(loss.val) == before


def test_graph_stats():
    g, x, w, loss = build()
    stats = get_graph_stats(g)
    assert stats['nodes'] == len(g) == 6
    assert stats['edges'] == 6
    assert stats['max_fan_out'] == 2     # h feeds both sides of h * h
    assert stats['operations']['dot'] == 1
    assert get_graph_stats(ExpressionGraph())['nodes'] == 0


def test_print_graph_summary(capsys):
    g, *_ = build()
    stats = print_graph_summary(g, detailed=True)
    out = capsys.readouterr().out
    assert "COMPUTATION GRAPH SUMMARY" in out
    assert "Node   2: dot" in out
    assert stats['nodes'] == 6


def test_check_finite():
    g = ExpressionGraph(GraphConfig(check_finite=True))
    x = g.param(value=[1.0, 0.0])
    y = 1.0 / x
    with np.errstate(divide="ignore"):
        with pytest.raises(FloatingPointError):
            g.forward(1)
    assert y.index == 2


def test_float32_storage():
    g = ExpressionGraph(GraphConfig(dtype=np.float32))
    x = g.param(value=[1.0, 2.0])
    y = (x * x).sum()
    g.backprop(1)
    assert y.val.dtype == np.float32
    assert x.grad.dtype == np.float32


def test_config_validation():
    with pytest.raises(ValueError):
        GraphConfig(duplicate_names="shadow")
    with pytest.raises(TypeError):
        GraphConfig(dtype=np.int32)


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("AAD_GRAPH_DUPLICATE_NAMES", "Replace")
    monkeypatch.setenv("AAD_GRAPH_CHECK_FINITE", "yes")
    config = GraphConfig.from_env()
    assert config.duplicate_names == "replace"
    assert config.check_finite is True
    assert GraphConfig.from_env(check_finite=False).check_finite is False


def test_debug_logging(caplog):
    g, x, w, loss = build()
    x.val = np.zeros((4, 2))
    with caplog.at_level(logging.DEBUG, logger="aad_expression_graph"):
        g.backprop(4)
    messages = [r.getMessage() for r in caplog.records]
    assert "forward: 6 nodes, batch extent 4" in messages
    assert any(m.startswith("backward: seeding node 5") for m in messages)


def test_setup_logging(monkeypatch):
    monkeypatch.setenv("AAD_GRAPH_LOG_LEVEL", "debug")
    logger = setup_logging()
    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert setup_logging("info").level == logging.INFO
        assert len(logger.handlers) == 1
    finally:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
