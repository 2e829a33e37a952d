"""Friendship topologies for belief-spread populations (networkx)."""

from __future__ import annotations

from typing import Dict, Iterable

import networkx as nx
import numpy as np

TOPOLOGIES = ("complete", "erdos_renyi", "watts_strogatz", "barabasi_albert")


def _graph_seed(rng: np.random.Generator) -> int:
    return int(rng.integers(0, 2**31 - 1))


def build_social_graph(
    topology: str,
    n: int,
    rng: np.random.Generator,
    params: Dict[str, float] | None = None,
) -> nx.Graph:
    """Undirected friendship graph over nodes 0..n-1."""
    params = params or {}
    if topology == "complete":
        return nx.complete_graph(n)
    if topology == "erdos_renyi":
        p = float(params.get("p", 0.1))
        return nx.erdos_renyi_graph(n, p, seed=_graph_seed(rng))
    if topology == "watts_strogatz":
        k = int(params.get("k", 4))
        p = float(params.get("p", 0.1))
        k = max(2, min(k, n - 1)) if n > 2 else 0
        if k == 0:
            return nx.complete_graph(n)
        return nx.watts_strogatz_graph(n, k, p, seed=_graph_seed(rng))
    if topology == "barabasi_albert":
        m = int(params.get("m", 2))
        if n <= m:
            return nx.complete_graph(n)
        return nx.barabasi_albert_graph(n, max(1, m), seed=_graph_seed(rng))
    raise ValueError(f"unknown topology {topology!r}; expected one of {', '.join(TOPOLOGIES)}")


def _degree_gini(degrees: Iterable[float]) -> float:
    """Inequality of the degree sequence, 0 when every node has the same degree."""
    ranked = np.sort(np.asarray(list(degrees), dtype=float))
    n = ranked.size
    total = ranked.sum()
    if n == 0 or total == 0:
        return 0.0
    weights = 2 * np.arange(1, n + 1) - n - 1
    return float((weights * ranked).sum() / (n * total))


def compute_network_metrics(graph: nx.Graph) -> Dict[str, float]:
    if graph.number_of_nodes() == 0:
        return {
            "network_clustering": 0.0,
            "network_degree_mean": 0.0,
            "network_degree_std": 0.0,
            "network_degree_gini": 0.0,
        }
    undirected = graph.to_undirected() if graph.is_directed() else graph
    degrees = [d for _, d in graph.degree()]
    return {
        "network_clustering": float(nx.average_clustering(undirected)),
        "network_degree_mean": float(np.mean(degrees)),
        "network_degree_std": float(np.std(degrees)),
        "network_degree_gini": _degree_gini(degrees),
    }


def friendship_graph(agents) -> nx.DiGraph:
    """Directed graph with an edge agent -> friend weighted by the friend weight."""
    graph = nx.DiGraph()
    for agent in agents:
        graph.add_node(agent.uuid)
    for agent in agents:
        for friend, weight in agent.friends.items():
            graph.add_edge(agent.uuid, friend.uuid, weight=weight)
    return graph
