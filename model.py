"""Belief-spread agent model: beliefs, behaviours and the per-tick update (Mesa 3.x)."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol

import numpy as np
from mesa import Agent, DataCollector, Model

from network import friendship_graph

logger = logging.getLogger("beliefspread.model")

# Belief -> Behaviour -> weight in [-1, +1]. Missing entries read as 0.
PerformanceRelationships = Dict["Belief", Dict["Behaviour", float]]


def clamp_activation(value: float) -> float:
    return float(np.clip(value, -1.0, 1.0))


class BeliefSpreadError(Exception):
    """Base class for errors raised by the simulation."""


class MissingDeltaError(BeliefSpreadError):
    def __init__(self, agent: "BeliefAgent", belief: "Belief"):
        self.agent = agent
        self.belief = belief
        super().__init__(f"delta not found for belief {belief.name!r} on agent {agent.uuid}")


class MissingPriorTimeError(BeliefSpreadError):
    def __init__(self, agent: "BeliefAgent", time: int):
        self.agent = agent
        self.time = time
        super().__init__(f"no activation for time {time} on agent {agent.uuid}")


class MissingPriorBeliefError(BeliefSpreadError):
    def __init__(self, agent: "BeliefAgent", belief: "Belief", time: int):
        self.agent = agent
        self.belief = belief
        self.time = time
        super().__init__(
            f"no activation found for belief {belief.name!r} at time {time} on agent {agent.uuid}"
        )


class SpecError(BeliefSpreadError):
    """An input document could not be parsed into simulation entities."""


class RunStateError(BeliefSpreadError):
    """A tick was requested that would rewrite results already produced."""


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class Behaviour:
    name: str
    uuid: uuid.UUID

    @classmethod
    def new(cls, name: str) -> "Behaviour":
        return cls(name=name, uuid=uuid.uuid4())


@dataclass(eq=False)
class Belief:
    """
    A belief, with its sparse perception and relationship tables.

    perception[behaviour] is how strongly performing the behaviour signals
    holding this belief. relationship[other] is how compatible holding
    ``other`` is, given this belief is held. An absent key means "no
    relationship", which is not the same as a relationship of 0.
    """

    name: str
    uuid: uuid.UUID
    perception: Dict[Behaviour, float] = field(default_factory=dict)
    relationship: Dict["Belief", float] = field(default_factory=dict)

    @classmethod
    def new(cls, name: str) -> "Belief":
        return cls(name=name, uuid=uuid.uuid4())

    def __repr__(self) -> str:
        return f"Belief(name={self.name!r}, uuid={self.uuid})"


class BeliefAgent(Agent):
    def __init__(self, model: "BeliefSpreadModel", agent_uuid: uuid.UUID | None = None):
        super().__init__(model)
        self.uuid = agent_uuid or uuid.uuid4()
        self.activations: Dict[int, Dict[Belief, float]] = {}
        self.friends: Dict[BeliefAgent, float] = {}
        self.actions: Dict[int, Behaviour] = {}
        self.deltas: Dict[Belief, float] = {}

    def __repr__(self) -> str:
        return f"BeliefAgent(uuid={self.uuid})"

    def weighted_relationship(self, time: int, b1: Belief, b2: Belief) -> Optional[float]:
        """
        Compatibility of holding b2 given the agent holds b1 at ``time``.

        Returns None when the agent has no activation for b1 at ``time`` or
        when b1 has no relationship entry for b2.
        """
        activation = self.activations.get(time, {}).get(b1)
        if activation is None:
            return None
        relationship = b1.relationship.get(b2)
        if relationship is None:
            return None
        return activation * relationship

    def contextualise(self, time: int, belief: Belief, beliefs: List[Belief]) -> float:
        """Mean weighted relationship of ``belief`` against every belief in ``beliefs``."""
        size = len(beliefs)
        if size == 0:
            return 0.0
        context = 0.0
        for other in beliefs:
            wr = self.weighted_relationship(time, belief, other)
            if wr is not None:
                context += wr
        return context / size

    def get_actions_of_friends(self, time: int) -> Dict[Behaviour, float]:
        """Total friend weight behind each behaviour performed at ``time``."""
        actions: Dict[Behaviour, float] = {}
        for friend, weight in self.friends.items():
            action = friend.actions.get(time)
            if action is not None:
                actions[action] = actions.get(action, 0.0) + weight
        return actions

    def pressure(self, belief: Belief, actions_of_friends: Dict[Behaviour, float]) -> float:
        # Divides by every friend, not only those who acted.
        size = len(self.friends)
        if size == 0:
            return 0.0
        pressure = 0.0
        for behaviour, weight in actions_of_friends.items():
            pressure += belief.perception.get(behaviour, 0.0) * weight
        return pressure / size

    def activation_change(
        self,
        time: int,
        belief: Belief,
        beliefs: List[Belief],
        actions_of_friends: Dict[Behaviour, float],
    ) -> float:
        pressure = self.pressure(belief, actions_of_friends)
        context = self.contextualise(time, belief, beliefs)
        if pressure > 0.0:
            return (1.0 + context) / 2.0 * pressure
        return (1.0 - context) / 2.0 * pressure

    def update_activation(
        self,
        time: int,
        belief: Belief,
        beliefs: List[Belief],
        actions_of_friends: Dict[Behaviour, float],
    ) -> None:
        """Write activations[time][belief] from the agent's state at ``time - 1``."""
        delta = self.deltas.get(belief)
        if delta is None:
            raise MissingDeltaError(self, belief)

        previous = self.activations.get(time - 1)
        if previous is None:
            raise MissingPriorTimeError(self, time - 1)

        activation = previous.get(belief)
        if activation is None:
            raise MissingPriorBeliefError(self, belief, time - 1)

        change = self.activation_change(time - 1, belief, beliefs, actions_of_friends)
        self.activations.setdefault(time, {})[belief] = clamp_activation(delta * activation + change)

    def update_activation_for_all_beliefs(self, time: int, beliefs: List[Belief]) -> None:
        # Stops at the first failing belief; earlier beliefs stay written.
        actions_of_friends = self.get_actions_of_friends(time - 1)
        for belief in beliefs:
            self.update_activation(time, belief, beliefs, actions_of_friends)

    def perform_action(
        self,
        time: int,
        behaviours: List[Behaviour],
        beliefs: List[Belief],
        performance_relationships: PerformanceRelationships,
        rng: RandomSource | None = None,
    ) -> Optional[Behaviour]:
        if rng is None:
            rng = self.model.action_rng(self, time)
        return select_action(self, time, behaviours, beliefs, performance_relationships, rng)


def behaviour_scores(
    agent: BeliefAgent,
    time: int,
    behaviours: List[Behaviour],
    beliefs: List[Belief],
    performance_relationships: PerformanceRelationships,
) -> List[tuple[Behaviour, float]]:
    """Unnormalised preference for every behaviour, in input order."""
    activations = agent.activations.get(time, {})
    scores = []
    for behaviour in behaviours:
        value = 0.0
        for belief in beliefs:
            prs = performance_relationships.get(belief, {}).get(behaviour, 0.0)
            value += prs * activations.get(belief, 0.0)
        scores.append((behaviour, value))
    return scores


def select_action(
    agent: BeliefAgent,
    time: int,
    behaviours: List[Behaviour],
    beliefs: List[Belief],
    performance_relationships: PerformanceRelationships,
    rng: RandomSource,
) -> Optional[Behaviour]:
    """
    Choose and record the behaviour ``agent`` performs at ``time``.

    If every behaviour scores negative the least-bad one is taken. If exactly
    one scores positive it is taken. With several positive scores the choice
    is drawn from their normalised scores, walked in input order. When no
    score is positive and the best is exactly 0, the best is taken.
    """
    if not behaviours:
        return None

    scores = behaviour_scores(agent, time, behaviours, beliefs, performance_relationships)
    best, best_value = sorted(scores, key=lambda pair: pair[1])[-1]

    positive = [(behaviour, value) for behaviour, value in scores if value > 0.0]
    if best_value < 0.0 or not positive:
        chosen = best
    elif len(positive) == 1:
        chosen = positive[0][0]
    else:
        total = sum(value for _, value in positive)
        chosen = positive[-1][0]
        remainder = rng.random()
        for behaviour, value in positive:
            remainder -= value / total
            if remainder <= 0.0:
                chosen = behaviour
                break

    agent.actions[time] = chosen
    return chosen


class RunState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


class BeliefSpreadModel(Model):
    """
    Tick driver. Each tick first updates every agent's activations, then lets
    every agent pick a behaviour; the second phase only starts once the first
    has completed for the whole population.
    """

    def __init__(
        self,
        behaviours: Iterable[Behaviour] = (),
        beliefs: Iterable[Belief] = (),
        performance_relationships: PerformanceRelationships | None = None,
        start_time: int = 1,
        end_time: int = 1,
        seed: int | None = None,
        per_agent_streams: bool = False,
        **kwargs,
    ):
        super().__init__(seed=seed)
        if start_time < 0 or end_time < 0:
            raise ValueError(f"simulation times must be non-negative, got {start_time}..{end_time}")
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.behaviours: List[Behaviour] = list(behaviours)
        self.beliefs: List[Belief] = list(beliefs)
        self.performance_relationships: PerformanceRelationships = performance_relationships or {}
        self.start_time = int(start_time)
        self.end_time = int(end_time)
        self.current_time = self.start_time
        self.per_agent_streams = bool(per_agent_streams)
        # Drawn once when unseeded.
        self.stream_seed = int(seed) if seed is not None else int(np.random.SeedSequence().entropy)
        self.state = RunState.NOT_STARTED
        self.running = True
        self.datacollector = DataCollector(
            model_reporters={
                "time": lambda m: m.last_tick,
                "mean_activation": lambda m: m.mean_activations(m.last_tick),
                "performers": lambda m: m.performer_counts(m.last_tick),
            }
        )
        self.last_tick: int | None = None

    @property
    def believers(self) -> List[BeliefAgent]:
        return [a for a in self.agents if isinstance(a, BeliefAgent)]

    def add_agent(self, agent_uuid: uuid.UUID | None = None) -> BeliefAgent:
        return BeliefAgent(self, agent_uuid)

    def agent_by_uuid(self) -> Dict[uuid.UUID, BeliefAgent]:
        return {a.uuid: a for a in self.believers}

    def belief_by_uuid(self) -> Dict[uuid.UUID, Belief]:
        return {b.uuid: b for b in self.beliefs}

    def behaviour_by_uuid(self) -> Dict[uuid.UUID, Behaviour]:
        return {b.uuid: b for b in self.behaviours}

    def action_rng(self, agent: BeliefAgent, time: int) -> RandomSource:
        """
        Random source for one agent's draw at ``time``.

        With per-agent streams the generator is derived from
        ``(stream_seed, agent.unique_id, time)``; otherwise the shared model rng.
        """
        if not self.per_agent_streams:
            return self.rng
        return np.random.default_rng([self.stream_seed, int(agent.unique_id), int(time)])

    def perceive_beliefs(self, time: int) -> None:
        for agent in self.believers:
            agent.update_activation_for_all_beliefs(time, self.beliefs)

    def perform_actions(self, time: int) -> None:
        for agent in self.believers:
            agent.perform_action(time, self.behaviours, self.beliefs, self.performance_relationships)

    def _check_can_run(self) -> None:
        if self.state in (RunState.FINISHED, RunState.FAILED):
            raise RunStateError(f"simulation already {self.state.value}; build a new model to run again")

    def tick(self, time: int) -> None:
        self._check_can_run()
        if self.last_tick is not None and time <= self.last_tick:
            raise RunStateError(f"time {time} is not after the last tick {self.last_tick}")
        logger.info("Perceiving beliefs time=%d", time)
        try:
            self.perceive_beliefs(time)
        except BeliefSpreadError:
            self.state = RunState.FAILED
            self.running = False
            logger.error("Tick aborted during belief update time=%d", time)
            raise
        logger.info("Performing actions time=%d", time)
        self.perform_actions(time)
        self.last_tick = time
        self.datacollector.collect(self)

    def run_range(self, start: int, end: int) -> None:
        """Tick every time from ``start`` to ``end`` inclusive. A model runs once."""
        self._check_can_run()
        logger.info(
            "Running simulation start=%d end=%d beliefs=%d behaviours=%d agents=%d",
            start, end, len(self.beliefs), len(self.behaviours), len(self.believers),
        )
        self.state = RunState.RUNNING
        for time in range(start, end + 1):
            self.tick(time)
            self.current_time = time + 1
        self.state = RunState.FINISHED
        self.running = False
        logger.info("Ending simulation")

    def run(self) -> None:
        self.run_range(self.start_time, self.end_time)

    def step(self) -> None:
        self._check_can_run()
        if self.current_time > self.end_time:
            self.state = RunState.FINISHED
            self.running = False
            return
        self.state = RunState.RUNNING
        self.tick(self.current_time)
        self.current_time += 1
        if self.current_time > self.end_time:
            self.state = RunState.FINISHED
            self.running = False

    def mean_activations(self, time: int | None) -> Dict[str, float]:
        if time is None:
            return {}
        agents = self.believers
        if not agents:
            return {b.name: 0.0 for b in self.beliefs}
        return {
            b.name: float(np.mean([a.activations.get(time, {}).get(b, 0.0) for a in agents]))
            for b in self.beliefs
        }

    def performer_counts(self, time: int | None) -> Dict[str, int]:
        if time is None:
            return {}
        counts = {b.name: 0 for b in self.behaviours}
        for agent in self.believers:
            action = agent.actions.get(time)
            if action is not None:
                counts[action.name] = counts.get(action.name, 0) + 1
        return counts

    def friendship_graph(self):
        return friendship_graph(self.believers)

    def __repr__(self) -> str:
        return (
            f"BeliefSpreadModel(agents={len(self.believers)}, beliefs={len(self.beliefs)}, "
            f"behaviours={len(self.behaviours)}, state={self.state.value})"
        )
