"""Graph resolution for qpipe."""

from qpipe.compiler.resolver import get_ops_and_frontier
from qpipe.compiler.dag import build_dependency_graph, is_causal_order

__all__ = [
    "get_ops_and_frontier",
    "build_dependency_graph",
    "is_causal_order",
]
