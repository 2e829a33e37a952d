"""Per-time summary statistics of a finished run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from model import Behaviour, Belief, BeliefAgent


@dataclass
class OutputSpec:
    """Statistics for one time step, keyed by belief or behaviour UUID string."""

    mean_activation: Dict[str, float] = field(default_factory=dict)
    sd_activation: Dict[str, float] = field(default_factory=dict)
    median_activation: Dict[str, float] = field(default_factory=dict)
    nonzero_activation_count: Dict[str, int] = field(default_factory=dict)
    n_performers: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meanActivation": self.mean_activation,
            "sdActivation": self.sd_activation,
            "medianActivation": self.median_activation,
            "nonzeroActivationCount": self.nonzero_activation_count,
            "nPerformers": self.n_performers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputSpec":
        return cls(
            mean_activation={k: float(v) for k, v in data.get("meanActivation", {}).items()},
            sd_activation={k: float(v) for k, v in data.get("sdActivation", {}).items()},
            median_activation={k: float(v) for k, v in data.get("medianActivation", {}).items()},
            nonzero_activation_count={k: int(v) for k, v in data.get("nonzeroActivationCount", {}).items()},
            n_performers={k: int(v) for k, v in data.get("nPerformers", {}).items()},
        )


def summarise_time(
    agents: List[BeliefAgent],
    beliefs: List[Belief],
    behaviours: List[Behaviour],
    time: int,
) -> OutputSpec:
    """
    Population statistics at one time.

    The mean divides by the whole population, the standard deviation uses an
    n-1 denominator over recorded activations, and the median is the element
    at index n // 2 of the sorted per-agent activations (absent counted as 0).
    Even-sized populations get a single element, never an average of the two
    middle values.
    """
    out = OutputSpec()
    n = len(agents)
    for behaviour in behaviours:
        out.n_performers[str(behaviour.uuid)] = 0
    for agent in agents:
        action = agent.actions.get(time)
        if action is not None:
            key = str(action.uuid)
            out.n_performers[key] = out.n_performers.get(key, 0) + 1

    if n == 0:
        return out

    for belief in beliefs:
        key = str(belief.uuid)
        recorded = np.array(
            [a.activations[time][belief] for a in agents if belief in a.activations.get(time, {})],
            dtype=float,
        )
        mean = float(recorded.sum() / n)
        out.mean_activation[key] = mean
        if n > 1:
            out.sd_activation[key] = float(np.sqrt(((recorded - mean) ** 2).sum() / (n - 1)))
        else:
            out.sd_activation[key] = 0.0
        everyone = np.sort([a.activations.get(time, {}).get(belief, 0.0) for a in agents])
        out.median_activation[key] = float(everyone[n // 2])
        out.nonzero_activation_count[key] = int(np.count_nonzero(recorded))
    return out


def summarise(
    agents: List[BeliefAgent],
    beliefs: List[Belief],
    behaviours: List[Behaviour],
    start_time: int,
    end_time: int,
) -> Dict[int, OutputSpec]:
    return {
        time: summarise_time(agents, beliefs, behaviours, time)
        for time in range(start_time, end_time + 1)
    }


def summary_frame(
    summaries: Dict[int, OutputSpec],
    beliefs: List[Belief],
    behaviours: List[Behaviour],
) -> pd.DataFrame:
    """Long-format table: one row per (time, entity, statistic)."""
    names = {str(b.uuid): b.name for b in beliefs}
    names.update({str(b.uuid): b.name for b in behaviours})
    rows = []
    for time, spec in sorted(summaries.items()):
        for statistic, kind, values in (
            ("mean_activation", "belief", spec.mean_activation),
            ("sd_activation", "belief", spec.sd_activation),
            ("median_activation", "belief", spec.median_activation),
            ("nonzero_activation_count", "belief", spec.nonzero_activation_count),
            ("n_performers", "behaviour", spec.n_performers),
        ):
            for key, value in values.items():
                rows.append(
                    dict(
                        time=time,
                        kind=kind,
                        uuid=key,
                        name=names.get(key, ""),
                        statistic=statistic,
                        value=float(value),
                    )
                )
    return pd.DataFrame(rows, columns=["time", "kind", "uuid", "name", "statistic", "value"])
