"""
Graph diagnostics.

DOT rendering and structural statistics for an ExpressionGraph. Nothing here
touches values or adjoints.
"""

from collections import Counter
from typing import Dict

import numpy as np


def graphviz(graph) -> str:
    """
    DOT description of the graph, edges pointing from operands to consumers.

    Nodes are emitted in reverse construction order, so the output node comes first.
    """
    parts = ["digraph ExpressionGraph {\n", "rankdir=BT\n"]
    for node in reversed(graph.nodes):
        parts.append(node.graphviz())
    parts.append("}\n")
    return "".join(parts)


def get_graph_stats(graph) -> Dict:
    """
    Structural statistics (no printing).

    Returns:
        dict with node/edge counts, fan-in/fan-out and an operation breakdown
    """
    nodes = graph.nodes
    if not nodes:
        return {
            'nodes': 0,
            'edges': 0,
            'max_fan_in': 0,
            'avg_fan_in': 0.0,
            'max_fan_out': 0,
            'avg_fan_out': 0.0,
            'operations': {}
        }

    n_nodes = len(nodes)
    fan_ins = [len(node.children) for node in nodes]

    fan_outs = [0] * n_nodes
    for node in nodes:
        for child in node.children:
            fan_outs[child.index] += 1

    op_counter = Counter(node.op_tag for node in nodes)

    return {
        'nodes': n_nodes,
        'edges': sum(fan_ins),
        'max_fan_in': max(fan_ins),
        'avg_fan_in': float(np.mean(fan_ins)),
        'max_fan_out': max(fan_outs),
        'avg_fan_out': float(np.mean(fan_outs)),
        'operations': dict(op_counter)
    }


def print_graph_summary(graph, detailed: bool = False) -> Dict:
    """
    Print a summary of the graph and return the statistics.

    Args:
        graph: ExpressionGraph
        detailed: also list the nodes (only for graphs of at most 100 nodes)
    """
    stats = get_graph_stats(graph)
    if stats['nodes'] == 0:
        print("Empty computation graph")
        return stats

    print("\n" + "="*70)
    print("COMPUTATION GRAPH SUMMARY")
    print("="*70)
    print(f"Total nodes:        {stats['nodes']:,}")
    print(f"Total edges:        {stats['edges']:,}")
    print(f"Max fan-in:         {stats['max_fan_in']}")
    print(f"Avg fan-in:         {stats['avg_fan_in']:.2f}")
    print(f"Max fan-out:        {stats['max_fan_out']}")
    print(f"Avg fan-out:        {stats['avg_fan_out']:.2f}")
    print()
    print("Operation breakdown:")
    for op_type, count in Counter(stats['operations']).most_common(10):
        pct = 100.0 * count / stats['nodes']
        print(f"  {op_type:12s}: {count:6,} ({pct:5.1f}%)")

    if detailed and stats['nodes'] <= 100:
        print()
        print("="*70)
        print("DETAILED NODE LIST")
        print("="*70)
        for node in graph.nodes:
            children = ", ".join(f"Node{child.index}" for child in node.children)
            print(f"Node {node.index:3d}: {node.op_tag:12s} <- [{children}]")

    print("="*70 + "\n")
    return stats
