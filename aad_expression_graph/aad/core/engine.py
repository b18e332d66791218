# aad/core/engine.py
"""
Forward and reverse sweeps over a node stack.

The stack is in construction order, which is a topological order: every
node's children sit before it. Forward sweeps walk it front to back, the
reverse sweep back to front.
"""
from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np

from .node import Node


def allocate_all(nodes: Sequence[Node], batch_size: int) -> None:
    """Size (or reuse) every node's storage before any node computes."""
    for node in nodes:
        node.allocate(batch_size)


def forward_all(nodes: Sequence[Node]) -> None:
    for node in nodes:
        node.forward()


def check_finite(nodes: Sequence[Node]) -> None:
    """Raise FloatingPointError at the first node whose value holds NaN or inf."""
    for node in nodes:
        if not np.all(np.isfinite(node.val)):
            raise FloatingPointError(f"Non-finite value in node {node.index} ({node.label()})")


def zero_adjoints(nodes: Sequence[Node]) -> None:
    """Reset every adjoint on the stack to zero."""
    for node in nodes:
        node.set_zero_adjoint()


def reverse(nodes: Sequence[Node], output: Node) -> None:
    """
    Seed `output` with d(output)/d(output) = 1 and sweep back to the start of the stack.

    Each node adds adjoint * (d node / d child) into its children's adjoints,
    so a child consumed several times receives the sum over all consumers.
    Nodes pushed after `output` cannot reach it and are skipped.
    Adjoints must have been zeroed first (see zero_adjoints).
    """
    if output.allocated_shape != ():
        warnings.warn(
            f"Seeding non-scalar output {output.label()} of shape {output.allocated_shape}; "
            f"gradients are those of the sum of its elements"
        )
    output.init_dependent()

    for node in reversed(nodes[: output.index + 1]):
        if _is_zero(node.adj):
            continue  # nothing to propagate
        node.backward()


def _is_zero(x: np.ndarray) -> bool:
    return not np.any(x)
