"""JSON (optionally zstd-compressed) input and output documents for belief-spread runs."""

from __future__ import annotations

import io
import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import zstandard

from model import (
    Behaviour,
    Belief,
    BeliefAgent,
    BeliefSpreadModel,
    PerformanceRelationships,
    SpecError,
)
from summary import OutputSpec

logger = logging.getLogger("beliefspread.io")


def _uuid(value: Any, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise SpecError(f"invalid {what} uuid: {value!r}") from exc


def _float(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise SpecError(f"invalid {what} value: {value!r}") from exc


def _time(value: Any) -> int:
    try:
        t = int(value)
    except (TypeError, ValueError) as exc:
        raise SpecError(f"invalid time key: {value!r}") from exc
    if t < 0:
        raise SpecError(f"time must be non-negative: {t}")
    return t


def _mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise SpecError(f"{key!r} must be an object, got {type(value).__name__}")
    return value


@dataclass
class BehaviourSpec:
    name: str
    uuid: uuid.UUID

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BehaviourSpec":
        if not isinstance(data, dict):
            raise SpecError(f"behaviour entry must be an object, got {type(data).__name__}")
        return cls(name=str(data.get("name", "")), uuid=_uuid(data.get("uuid"), "behaviour"))

    @classmethod
    def from_behaviour(cls, behaviour: Behaviour) -> "BehaviourSpec":
        return cls(name=behaviour.name, uuid=behaviour.uuid)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "uuid": str(self.uuid)}

    def to_behaviour(self) -> Behaviour:
        return Behaviour(name=self.name, uuid=self.uuid)


@dataclass
class BeliefSpec:
    name: str
    uuid: uuid.UUID
    perceptions: Dict[uuid.UUID, float] = field(default_factory=dict)
    relationships: Dict[uuid.UUID, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BeliefSpec":
        if not isinstance(data, dict):
            raise SpecError(f"belief entry must be an object, got {type(data).__name__}")
        return cls(
            name=str(data.get("name", "")),
            uuid=_uuid(data.get("uuid"), "belief"),
            perceptions={
                _uuid(k, "behaviour"): _float(v, "perception")
                for k, v in _mapping(data, "perceptions").items()
            },
            relationships={
                _uuid(k, "belief"): _float(v, "relationship")
                for k, v in _mapping(data, "relationships").items()
            },
        )

    @classmethod
    def from_belief(cls, belief: Belief) -> "BeliefSpec":
        return cls(
            name=belief.name,
            uuid=belief.uuid,
            perceptions={b.uuid: v for b, v in belief.perception.items()},
            relationships={b.uuid: v for b, v in belief.relationship.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "uuid": str(self.uuid),
            "perceptions": {str(k): v for k, v in self.perceptions.items()},
            "relationships": {str(k): v for k, v in self.relationships.items()},
        }

    def to_belief(self, behaviours: Dict[uuid.UUID, Behaviour]) -> Belief:
        belief = Belief(name=self.name, uuid=self.uuid)
        for behaviour_uuid, value in self.perceptions.items():
            behaviour = behaviours.get(behaviour_uuid)
            if behaviour is None:
                logger.warning("Dropping perception of unknown behaviour %s on belief %s", behaviour_uuid, self.uuid)
                continue
            belief.perception[behaviour] = value
        return belief

    def link_relationships(self, beliefs: Dict[uuid.UUID, Belief]) -> None:
        this = beliefs.get(self.uuid)
        if this is None:
            return
        for other_uuid, value in self.relationships.items():
            other = beliefs.get(other_uuid)
            if other is None:
                logger.warning("Dropping relationship to unknown belief %s on belief %s", other_uuid, self.uuid)
                continue
            this.relationship[other] = value


@dataclass
class PerformanceRelationshipSpec:
    belief_uuid: uuid.UUID
    behaviour_uuid: uuid.UUID
    value: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceRelationshipSpec":
        if not isinstance(data, dict):
            raise SpecError(f"performance relationship must be an object, got {type(data).__name__}")
        return cls(
            belief_uuid=_uuid(data.get("beliefUuid"), "belief"),
            behaviour_uuid=_uuid(data.get("behaviourUuid"), "behaviour"),
            value=_float(data.get("value"), "performance relationship"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "beliefUuid": str(self.belief_uuid),
            "behaviourUuid": str(self.behaviour_uuid),
            "value": self.value,
        }


def performance_relationships_from_specs(
    specs: List[PerformanceRelationshipSpec],
    beliefs: Dict[uuid.UUID, Belief],
    behaviours: Dict[uuid.UUID, Behaviour],
) -> PerformanceRelationships:
    """
    Resolve spec UUIDs into a Belief -> Behaviour -> value table.

    A belief that resolves gets a row even if none of its behaviours do.
    """
    prs: PerformanceRelationships = {}
    for spec in specs:
        belief = beliefs.get(spec.belief_uuid)
        if belief is None:
            logger.warning("Dropping performance relationship for unknown belief %s", spec.belief_uuid)
            continue
        row = prs.setdefault(belief, {})
        behaviour = behaviours.get(spec.behaviour_uuid)
        if behaviour is None:
            logger.warning("Dropping performance relationship for unknown behaviour %s", spec.behaviour_uuid)
            continue
        row[behaviour] = spec.value
    return prs


def performance_relationships_to_specs(prs: PerformanceRelationships) -> List[PerformanceRelationshipSpec]:
    return [
        PerformanceRelationshipSpec(belief_uuid=belief.uuid, behaviour_uuid=behaviour.uuid, value=value)
        for belief, row in prs.items()
        for behaviour, value in row.items()
    ]


@dataclass
class AgentSpec:
    uuid: uuid.UUID
    actions: Dict[int, uuid.UUID] = field(default_factory=dict)
    activations: Dict[int, Dict[uuid.UUID, float]] = field(default_factory=dict)
    deltas: Dict[uuid.UUID, float] = field(default_factory=dict)
    friends: Dict[uuid.UUID, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentSpec":
        if not isinstance(data, dict):
            raise SpecError(f"agent entry must be an object, got {type(data).__name__}")
        activations: Dict[int, Dict[uuid.UUID, float]] = {}
        for t, acts in _mapping(data, "activations").items():
            if not isinstance(acts, dict):
                raise SpecError(f"activations at time {t!r} must be an object")
            activations[_time(t)] = {_uuid(k, "belief"): _float(v, "activation") for k, v in acts.items()}
        return cls(
            uuid=_uuid(data.get("uuid"), "agent"),
            actions={_time(t): _uuid(b, "behaviour") for t, b in _mapping(data, "actions").items()},
            activations=activations,
            deltas={_uuid(k, "belief"): _float(v, "delta") for k, v in _mapping(data, "deltas").items()},
            friends={_uuid(k, "agent"): _float(v, "friend weight") for k, v in _mapping(data, "friends").items()},
        )

    @classmethod
    def from_agent(cls, agent: BeliefAgent) -> "AgentSpec":
        return cls(
            uuid=agent.uuid,
            actions={t: b.uuid for t, b in agent.actions.items()},
            activations={t: {b.uuid: v for b, v in acts.items()} for t, acts in agent.activations.items()},
            deltas={b.uuid: v for b, v in agent.deltas.items()},
            friends={f.uuid: w for f, w in agent.friends.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": str(self.uuid),
            "actions": {str(t): str(b) for t, b in sorted(self.actions.items())},
            "activations": {
                str(t): {str(k): v for k, v in acts.items()} for t, acts in sorted(self.activations.items())
            },
            "deltas": {str(k): v for k, v in self.deltas.items()},
            "friends": {str(k): v for k, v in self.friends.items()},
        }

    def to_agent(
        self,
        model: BeliefSpreadModel,
        behaviours: Dict[uuid.UUID, Behaviour],
        beliefs: Dict[uuid.UUID, Belief],
    ) -> BeliefAgent:
        agent = BeliefAgent(model, self.uuid)
        for t, behaviour_uuid in self.actions.items():
            behaviour = behaviours.get(behaviour_uuid)
            if behaviour is None:
                logger.warning("Dropping action of unknown behaviour %s on agent %s", behaviour_uuid, self.uuid)
                continue
            agent.actions[t] = behaviour
        for t, acts in self.activations.items():
            slot = agent.activations.setdefault(t, {})
            for belief_uuid, value in acts.items():
                belief = beliefs.get(belief_uuid)
                if belief is None:
                    logger.warning("Dropping activation of unknown belief %s on agent %s", belief_uuid, self.uuid)
                    continue
                slot[belief] = value
        for belief_uuid, value in self.deltas.items():
            belief = beliefs.get(belief_uuid)
            if belief is None:
                logger.warning("Dropping delta of unknown belief %s on agent %s", belief_uuid, self.uuid)
                continue
            agent.deltas[belief] = value
        return agent

    def link_friends(self, agents: Dict[uuid.UUID, BeliefAgent]) -> None:
        this = agents.get(self.uuid)
        if this is None:
            return
        for friend_uuid, weight in self.friends.items():
            friend = agents.get(friend_uuid)
            if friend is None:
                logger.warning("Dropping unknown friend %s of agent %s", friend_uuid, self.uuid)
                continue
            this.friends[friend] = weight


def read_document(path: str | Path) -> Any:
    """Parse a JSON file, decompressing it first if the name ends in ``.zst``."""
    path = Path(path)
    raw = path.read_bytes()
    if path.suffix == ".zst":
        try:
            with zstandard.ZstdDecompressor().stream_reader(io.BytesIO(raw)) as reader:
                raw = reader.read()
        except zstandard.ZstdError as exc:
            raise SpecError(f"{path}: not a valid zstd stream") from exc
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SpecError(f"{path}: invalid JSON ({exc})") from exc


def write_document(path: str | Path, payload: Any) -> Path:
    """Write ``payload`` as JSON, zstd-compressed if the name ends in ``.zst``."""
    path = Path(path)
    data = json.dumps(payload).encode("utf-8")
    if path.suffix == ".zst":
        data = zstandard.ZstdCompressor().compress(data)
    path.write_bytes(data)
    return path


def _list_document(path: str | Path, what: str) -> List[Any]:
    data = read_document(path)
    if not isinstance(data, list):
        raise SpecError(f"{path}: {what} document must be a JSON array")
    return data


def read_behaviour_specs(path: str | Path) -> List[BehaviourSpec]:
    return [BehaviourSpec.from_dict(d) for d in _list_document(path, "behaviours")]


def read_belief_specs(path: str | Path) -> List[BeliefSpec]:
    return [BeliefSpec.from_dict(d) for d in _list_document(path, "beliefs")]


def read_agent_specs(path: str | Path) -> List[AgentSpec]:
    return [AgentSpec.from_dict(d) for d in _list_document(path, "agents")]


def read_performance_relationship_specs(path: str | Path) -> List[PerformanceRelationshipSpec]:
    return [PerformanceRelationshipSpec.from_dict(d) for d in _list_document(path, "performance relationships")]


def load_model(
    behaviour_specs: List[BehaviourSpec],
    belief_specs: List[BeliefSpec],
    agent_specs: List[AgentSpec],
    prs_specs: List[PerformanceRelationshipSpec],
    start_time: int = 1,
    end_time: int = 1,
    seed: int | None = None,
    per_agent_streams: bool = False,
) -> BeliefSpreadModel:
    """Resolve spec lists into a fully linked, ready-to-run model."""
    behaviours = [spec.to_behaviour() for spec in behaviour_specs]
    behaviours_by_uuid = {b.uuid: b for b in behaviours}

    beliefs = [spec.to_belief(behaviours_by_uuid) for spec in belief_specs]
    beliefs_by_uuid = {b.uuid: b for b in beliefs}
    for spec in belief_specs:
        spec.link_relationships(beliefs_by_uuid)

    prs = performance_relationships_from_specs(prs_specs, beliefs_by_uuid, behaviours_by_uuid)

    model = BeliefSpreadModel(
        behaviours=behaviours,
        beliefs=beliefs,
        performance_relationships=prs,
        start_time=start_time,
        end_time=end_time,
        seed=seed,
        per_agent_streams=per_agent_streams,
    )
    agents = [spec.to_agent(model, behaviours_by_uuid, beliefs_by_uuid) for spec in agent_specs]
    agents_by_uuid = {a.uuid: a for a in agents}
    for spec in agent_specs:
        spec.link_friends(agents_by_uuid)

    logger.info(
        "Loaded model behaviours=%d beliefs=%d agents=%d performance_relationships=%d",
        len(behaviours), len(beliefs), len(agents), sum(len(row) for row in prs.values()),
    )
    return model


def load_model_from_files(
    behaviours_path: str | Path,
    beliefs_path: str | Path,
    agents_path: str | Path,
    prs_path: str | Path,
    **model_kwargs,
) -> BeliefSpreadModel:
    return load_model(
        read_behaviour_specs(behaviours_path),
        read_belief_specs(beliefs_path),
        read_agent_specs(agents_path),
        read_performance_relationship_specs(prs_path),
        **model_kwargs,
    )


def write_full_output(path: str | Path, model: BeliefSpreadModel) -> Path:
    logger.info("Preparing AgentSpecs for output")
    specs = [AgentSpec.from_agent(agent).to_dict() for agent in model.believers]
    logger.info("Writing output to file %s", path)
    return write_document(path, specs)


def write_summary_output(path: str | Path, summaries: Dict[int, OutputSpec]) -> Path:
    logger.info("Writing output to file %s", path)
    payload = {"data": {str(t): spec.to_dict() for t, spec in sorted(summaries.items())}}
    return write_document(path, payload)


def read_summary_output(path: str | Path) -> Dict[int, OutputSpec]:
    data = read_document(path)
    if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
        raise SpecError(f"{path}: summary document must have a 'data' object")
    return {_time(t): OutputSpec.from_dict(spec) for t, spec in data["data"].items()}
