"""
Named-node registry and duplicate-name policies.
"""

import pytest

from aad_expression_graph.aad import (
    DuplicateNameError,
    ExpressionGraph,
    GraphConfig,
    GraphMismatchError,
    NameNotFoundError,
)


def test_round_trip():
    g = ExpressionGraph()
    h = g.param(value=1.0)
    g.add_named_node(h, "w")

    assert g["w"] == h
    assert g["w"].node is h.node
    assert g.has_node("w")
    assert "w" in g
    assert not g.has_node("missing")
    assert "missing" not in g


def test_missing_name():
    g = ExpressionGraph()
    with pytest.raises(NameNotFoundError) as excinfo:
        g["missing"]
    assert "missing" in str(excinfo.value)
    # also a KeyError
    with pytest.raises(KeyError):
        g["missing"]


def test_construction_name_registers():
    g = ExpressionGraph()
    x = g.input((None, 4), name="x")
    w = g.param((4,), name="w")
    assert g["x"] == x
    assert g["w"] == w


def test_same_node_same_name_is_noop():
    g = ExpressionGraph()
    h = g.param(value=1.0, name="w")
    g.add_named_node(h, "w")
    g.add_named_node(g["w"], "w")
    assert g["w"] == h


def test_duplicate_name_rejected_by_default():
    g = ExpressionGraph()
    a = g.param(value=1.0, name="w")
    b = g.param(value=2.0)
    with pytest.raises(DuplicateNameError):
        g.add_named_node(b, "w")
    assert g["w"] == a


def test_rejected_construction_leaves_stack_unchanged():
    g = ExpressionGraph()
    g.param(value=1.0, name="w")
    with pytest.raises(DuplicateNameError):
        g.param(value=2.0, name="w")
    assert len(g) == 1
    assert len(g.params) == 1


def test_keep_first_policy():
    g = ExpressionGraph(GraphConfig(duplicate_names="keep_first"))
    a = g.param(value=1.0, name="w")
    b = g.param(value=2.0, name="w")
    assert g["w"] == a
    assert len(g) == 2
    assert b.name == "w"


def test_replace_policy_keeps_existing_handles_valid():
    g = ExpressionGraph(GraphConfig(duplicate_names="replace"))
    a = g.param(value=1.0, name="w")
    held = g["w"]
    b = g.param(value=2.0)
    g.add_named_node(b, "w")

    assert g["w"] == b
    assert held == a
    y = held * b
    g.backprop(1)
    assert y.val == 2.0
    assert held.grad == 2.0


def test_alias_two_names_one_node():
    g = ExpressionGraph()
    a = g.param(value=1.0, name="w")
    g.add_named_node(a, "weights")
    assert g["w"] == g["weights"]


def test_foreign_handle_rejected():
    g1 = ExpressionGraph()
    g2 = ExpressionGraph()
    h = g2.param(value=1.0)
    with pytest.raises(GraphMismatchError):
        g1.add_named_node(h, "w")
    with pytest.raises(TypeError):
        g1.add_named_node(1.0, "w")
