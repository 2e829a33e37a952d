"""Synthetic initial conditions: random beliefs, behaviours and a seeded population."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np

from network import build_social_graph, compute_network_metrics
from serialization import (
    AgentSpec,
    BehaviourSpec,
    BeliefSpec,
    PerformanceRelationshipSpec,
    write_document,
)

logger = logging.getLogger("beliefspread.scenario")

AGENTS_FILE = "agents.json.zst"
BEHAVIOURS_FILE = "behaviours.json"
BELIEFS_FILE = "beliefs.json"
PRS_FILE = "prs.json"


@dataclass
class ScenarioParams:
    n_agents: int = 50
    n_beliefs: int = 3
    n_behaviours: int = 3
    topology: str = "watts_strogatz"
    topology_params: Dict[str, float] = field(default_factory=dict)
    start_time: int = 1
    seed: int | None = 42
    # Sampling ranges, drawn uniformly.
    perception_range: Tuple[float, float] = (-1.0, 1.0)
    relationship_range: Tuple[float, float] = (-1.0, 1.0)
    performance_range: Tuple[float, float] = (-1.0, 1.0)
    activation_range: Tuple[float, float] = (-1.0, 1.0)
    delta_range: Tuple[float, float] = (0.5, 1.0)
    friend_weight_range: Tuple[float, float] = (0.0, 1.0)

    def validate(self) -> None:
        if self.n_agents < 0 or self.n_beliefs < 0 or self.n_behaviours < 0:
            raise ValueError("scenario counts must be non-negative")
        if self.start_time < 1:
            raise ValueError("start_time must be at least 1 so activations can be seeded at start_time - 1")
        for name in (
            "perception_range", "relationship_range", "performance_range",
            "activation_range", "delta_range", "friend_weight_range",
        ):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name} is empty: {low} > {high}")


@dataclass
class Scenario:
    behaviours: List[BehaviourSpec]
    beliefs: List[BeliefSpec]
    agents: List[AgentSpec]
    performance_relationships: List[PerformanceRelationshipSpec]
    start_time: int = 1
    metadata: Dict[str, object] = field(default_factory=dict)


def _uuid(rng: np.random.Generator) -> uuid.UUID:
    return uuid.UUID(bytes=rng.bytes(16), version=4)


def _uniform(rng: np.random.Generator, bounds: Tuple[float, float]) -> float:
    low, high = bounds
    return float(rng.uniform(low, high))


def generate_scenario(params: ScenarioParams) -> Scenario:
    """
    Build a ready-to-run population.

    Every agent gets an activation for every belief at ``start_time - 1`` and
    a delta for every belief, so the first tick can proceed. Friendships follow
    ``params.topology`` and are made in both directions with independently
    drawn weights.
    """
    params.validate()
    rng = np.random.default_rng(params.seed)

    behaviours = [BehaviourSpec(name=f"behaviour-{i}", uuid=_uuid(rng)) for i in range(params.n_behaviours)]
    beliefs = [BeliefSpec(name=f"belief-{i}", uuid=_uuid(rng)) for i in range(params.n_beliefs)]
    for belief in beliefs:
        belief.perceptions = {b.uuid: _uniform(rng, params.perception_range) for b in behaviours}
        belief.relationships = {other.uuid: _uniform(rng, params.relationship_range) for other in beliefs}
        # A belief is always fully compatible with itself.
        belief.relationships[belief.uuid] = 1.0

    prs = [
        PerformanceRelationshipSpec(
            belief_uuid=belief.uuid,
            behaviour_uuid=behaviour.uuid,
            value=_uniform(rng, params.performance_range),
        )
        for belief in beliefs
        for behaviour in behaviours
    ]

    seed_time = params.start_time - 1
    agents = []
    for _ in range(params.n_agents):
        agents.append(
            AgentSpec(
                uuid=_uuid(rng),
                activations={seed_time: {b.uuid: _uniform(rng, params.activation_range) for b in beliefs}},
                deltas={b.uuid: _uniform(rng, params.delta_range) for b in beliefs},
            )
        )

    graph = build_social_graph(params.topology, params.n_agents, rng, params.topology_params)
    for i, j in graph.edges():
        agents[i].friends[agents[j].uuid] = _uniform(rng, params.friend_weight_range)
        agents[j].friends[agents[i].uuid] = _uniform(rng, params.friend_weight_range)

    metadata: Dict[str, object] = dict(
        seed=params.seed,
        topology=params.topology,
        n_agents=params.n_agents,
        n_beliefs=params.n_beliefs,
        n_behaviours=params.n_behaviours,
    )
    metadata.update(compute_network_metrics(graph))
    logger.info(
        "Generated scenario agents=%d beliefs=%d behaviours=%d friendships=%d",
        params.n_agents, params.n_beliefs, params.n_behaviours, graph.number_of_edges(),
    )
    return Scenario(
        behaviours=behaviours,
        beliefs=beliefs,
        agents=agents,
        performance_relationships=prs,
        start_time=params.start_time,
        metadata=metadata,
    )


def write_scenario(scenario: Scenario, directory: str | Path) -> Dict[str, Path]:
    """Write the four input documents into ``directory`` and return their paths."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    paths = dict(
        behaviours=write_document(directory / BEHAVIOURS_FILE, [b.to_dict() for b in scenario.behaviours]),
        beliefs=write_document(directory / BELIEFS_FILE, [b.to_dict() for b in scenario.beliefs]),
        agents=write_document(directory / AGENTS_FILE, [a.to_dict() for a in scenario.agents]),
        performance_relationships=write_document(
            directory / PRS_FILE, [p.to_dict() for p in scenario.performance_relationships]
        ),
    )
    logger.info("Wrote scenario to %s", directory)
    return paths
