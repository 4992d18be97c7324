"""
networkx view of the qubit dependency graph.

Used to check structural properties of the graph behind a terminal qubit
(acyclicity, causal soundness of an operation order) independently of the
resolver's own walk.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import networkx as nx

from qpipe.core.errors import GraphCycleError
from qpipe.core.modifiers import StateModifier
from qpipe.core.qubits import Qubit


def build_dependency_graph(q: Qubit) -> nx.DiGraph:
    """
    Build the DAG of every handle ``q`` depends on.

    Nodes are arena handles with ``indices`` and ``modifier`` attributes;
    edges point from parent to child and carry the parent ``kind``.
    """
    graph = q.graph
    dag = nx.DiGraph()
    stack = [q.handle]
    while stack:
        handle = stack.pop()
        if handle in dag and "indices" in dag.nodes[handle]:
            continue
        parent = graph.parent_of(handle)
        dag.add_node(
            handle,
            indices=graph.indices_of(handle),
            modifier=parent.modifier if parent is not None else None,
        )
        if parent is None:
            continue
        for p in parent.parents:
            dag.add_edge(p, handle, kind=parent.kind)
            stack.append(p)
    return dag


def check_acyclic(q: Qubit) -> nx.DiGraph:
    """Raise ``GraphCycleError`` unless the graph behind ``q`` is a DAG."""
    dag = build_dependency_graph(q)
    if not nx.is_directed_acyclic_graph(dag):
        cycle = nx.find_cycle(dag)
        raise GraphCycleError(f"Qubit graph contains a cycle: {cycle}")
    return dag


def origins(q: Qubit) -> List[Qubit]:
    """Handles with no parent that ``q`` depends on, oldest first."""
    dag = build_dependency_graph(q)
    return [q.graph.handle(h) for h in sorted(dag.nodes) if dag.in_degree(h) == 0]


def is_causal_order(q: Qubit, ops: Sequence[StateModifier]) -> bool:
    """
    True if every modifier in ``ops`` comes after all modifiers it depends on.

    A modifier depends on every modifier attached to an ancestor handle.
    Every modifier behind ``q`` must appear exactly once.
    """
    dag = build_dependency_graph(q)
    owner: Dict[int, int] = {}
    for handle, data in dag.nodes(data=True):
        if data["modifier"] is not None:
            owner[id(data["modifier"])] = handle

    if len(ops) != len(owner) or {id(m) for m in ops} != set(owner):
        return False

    position = {id(m): i for i, m in enumerate(ops)}
    for m in ops:
        handle = owner[id(m)]
        for ancestor in nx.ancestors(dag, handle):
            modifier = dag.nodes[ancestor]["modifier"]
            if modifier is not None and position[id(modifier)] > position[id(m)]:
                return False
    return True
