from __future__ import annotations

import logging
from typing import Dict, List

import pandas as pd

from scenario import Scenario
from serialization import load_model

logger = logging.getLogger("beliefspread.sweep")


def evaluate_seeds(
    scenario: Scenario,
    seeds: List[int],
    end_time: int,
    per_agent_streams: bool = False,
) -> pd.DataFrame:
    """Run the same initial conditions under several seeds; one row per seed at the final time."""
    rows = []
    for seed in seeds:
        model = load_model(
            scenario.behaviours,
            scenario.beliefs,
            scenario.agents,
            scenario.performance_relationships,
            start_time=scenario.start_time,
            end_time=end_time,
            seed=seed,
            per_agent_streams=per_agent_streams,
        )
        model.run()
        n = len(model.believers)
        row: Dict[str, object] = dict(seed=seed, end_time=end_time, state=model.state.value, agents=n)
        for name, value in model.mean_activations(end_time).items():
            row[f"mean_activation_{name}"] = value
        for name, count in model.performer_counts(end_time).items():
            row[f"performer_share_{name}"] = count / n if n else 0.0
        row.update({f"scenario_{k}": v for k, v in scenario.metadata.items()})
        rows.append(row)
        logger.debug("Seed %s finished", seed)
    return pd.DataFrame(rows)
