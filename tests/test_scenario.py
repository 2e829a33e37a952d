import pytest

from model import RunState
from scenario import ScenarioParams, generate_scenario, write_scenario
from serialization import load_model, load_model_from_files
from sweep import evaluate_seeds


def test_generated_scenario_is_seeded_for_first_tick():
    scenario = generate_scenario(ScenarioParams(n_agents=12, n_beliefs=3, n_behaviours=2, start_time=4, seed=1))
    belief_ids = {b.uuid for b in scenario.beliefs}

    assert len(scenario.agents) == 12
    assert len(scenario.performance_relationships) == 6
    for agent in scenario.agents:
        assert set(agent.activations) == {3}
        assert set(agent.activations[3]) == belief_ids
        assert set(agent.deltas) == belief_ids
        assert agent.uuid not in agent.friends
    assert scenario.metadata["n_agents"] == 12


def test_friendships_are_mutual():
    scenario = generate_scenario(ScenarioParams(n_agents=10, topology="complete", seed=3))
    for agent in scenario.agents:
        assert len(agent.friends) == 9


def test_same_seed_same_scenario():
    params = ScenarioParams(n_agents=8, seed=21)
    first = generate_scenario(params)
    second = generate_scenario(params)
    assert [a.to_dict() for a in first.agents] == [a.to_dict() for a in second.agents]


def test_invalid_params():
    with pytest.raises(ValueError):
        generate_scenario(ScenarioParams(start_time=0))
    with pytest.raises(ValueError):
        generate_scenario(ScenarioParams(delta_range=(1.0, 0.0)))


def test_generated_scenario_runs():
    scenario = generate_scenario(ScenarioParams(n_agents=15, seed=2))
    model = load_model(
        scenario.behaviours, scenario.beliefs, scenario.agents, scenario.performance_relationships,
        start_time=1, end_time=4, seed=2,
    )
    model.run()
    assert model.state is RunState.FINISHED
    assert all(set(a.actions) == {1, 2, 3, 4} for a in model.believers)


def test_written_scenario_loads(tmp_path):
    scenario = generate_scenario(ScenarioParams(n_agents=6, seed=4))
    paths = write_scenario(scenario, tmp_path / "scenario")

    assert paths["agents"].name.endswith(".json.zst")
    model = load_model_from_files(
        paths["behaviours"], paths["beliefs"], paths["agents"], paths["performance_relationships"],
    )
    assert len(model.believers) == 6
    assert sum(len(a.friends) for a in model.believers) == sum(len(a.friends) for a in scenario.agents)


def test_evaluate_seeds():
    scenario = generate_scenario(ScenarioParams(n_agents=10, n_behaviours=2, seed=8))
    df = evaluate_seeds(scenario, [1, 2, 3], end_time=3)

    assert list(df["seed"]) == [1, 2, 3]
    assert (df["state"] == "finished").all()
    share_cols = [c for c in df.columns if c.startswith("performer_share_")]
    assert len(share_cols) == 2
    assert df[share_cols].sum(axis=1).tolist() == pytest.approx([1.0, 1.0, 1.0])
    assert "scenario_network_clustering" in df.columns
