import pytest

from model import (
    Behaviour,
    Belief,
    BeliefAgent,
    BeliefSpreadModel,
    MissingDeltaError,
    MissingPriorTimeError,
    RunState,
    RunStateError,
)


def build_model(seed=3, n=4, start=1, end=3, **kwargs):
    good = Behaviour.new("good")
    bad = Behaviour.new("bad")
    b1 = Belief.new("b1")
    b2 = Belief.new("b2")
    b1.perception = {good: 0.8, bad: -0.4}
    b2.perception = {good: -0.2, bad: 0.6}
    b1.relationship = {b1: 1.0, b2: -0.5}
    b2.relationship = {b2: 1.0, b1: -0.5}
    prs = {b1: {good: 0.9, bad: -0.3}, b2: {good: 0.1, bad: 0.7}}
    model = BeliefSpreadModel([good, bad], [b1, b2], prs, start, end, seed=seed, **kwargs)
    agents = [model.add_agent() for _ in range(n)]
    for i, agent in enumerate(agents):
        agent.activations[start - 1] = {b1: 0.2 * i - 0.3, b2: 0.5 - 0.2 * i}
        agent.deltas = {b1: 0.9, b2: 0.8}
        for friend in agents:
            if friend is not agent:
                agent.friends[friend] = 0.5
    return model


def action_history(model):
    return [
        [agent.actions[t].name for t in range(model.start_time, model.end_time + 1)]
        for agent in model.believers
    ]


def test_new_model_not_started():
    model = build_model()
    assert model.state is RunState.NOT_STARTED
    assert model.running
    assert len(model.believers) == 4


def test_negative_times_rejected():
    with pytest.raises(ValueError):
        BeliefSpreadModel(start_time=-1)


def test_run_fills_every_time_step():
    model = build_model()
    model.run()

    assert model.state is RunState.FINISHED
    assert not model.running
    for agent in model.believers:
        assert set(agent.actions) == {1, 2, 3}
        for t in (1, 2, 3):
            assert set(agent.activations[t]) == set(model.beliefs)
            assert all(-1.0 <= v <= 1.0 for v in agent.activations[t].values())


def test_run_with_end_before_start_is_empty():
    model = build_model(start=3, end=2)
    model.run()
    assert model.state is RunState.FINISHED
    assert all(agent.actions == {} for agent in model.believers)


def test_actions_see_every_agents_fresh_activations(monkeypatch):
    model = build_model(n=3, end=2)
    events = []
    update = BeliefAgent.update_activation_for_all_beliefs
    perform = BeliefAgent.perform_action

    def record_update(self, time, beliefs):
        events.append(("update", time))
        return update(self, time, beliefs)

    def record_perform(self, time, *args, **kwargs):
        assert all(time in a.activations for a in self.model.believers)
        events.append(("perform", time))
        return perform(self, time, *args, **kwargs)

    monkeypatch.setattr(BeliefAgent, "update_activation_for_all_beliefs", record_update)
    monkeypatch.setattr(BeliefAgent, "perform_action", record_perform)
    model.run()

    assert events == [("update", 1)] * 3 + [("perform", 1)] * 3 + [("update", 2)] * 3 + [("perform", 2)] * 3


def test_failed_update_aborts_before_actions():
    model = build_model()
    broken = model.believers[2]
    del broken.deltas[model.beliefs[1]]

    with pytest.raises(MissingDeltaError) as info:
        model.run()

    assert info.value.agent is broken
    assert model.state is RunState.FAILED
    assert not model.running
    assert all(1 not in agent.actions for agent in model.believers)


def test_unseeded_start_time_fails():
    model = build_model(start=2, end=3)
    for agent in model.believers:
        agent.activations = {}
    with pytest.raises(MissingPriorTimeError):
        model.tick(2)
    assert model.state is RunState.FAILED


def test_step_loop_matches_run():
    stepped = build_model(seed=11)
    while stepped.running:
        stepped.step()
    ran = build_model(seed=11)
    ran.run()

    assert stepped.state is RunState.FINISHED
    assert stepped.current_time == 4
    assert action_history(stepped) == action_history(ran)


def test_datacollector_records_each_tick():
    model = build_model()
    model.run()
    df = model.datacollector.get_model_vars_dataframe()

    assert len(df) == 3
    assert list(df["time"]) == [1, 2, 3]
    assert set(df["mean_activation"].iloc[-1]) == {"b1", "b2"}
    assert sum(df["performers"].iloc[0].values()) == 4


def test_same_seed_same_actions():
    first = build_model(seed=5, end=6)
    first.run()
    second = build_model(seed=5, end=6)
    second.run()
    assert action_history(first) == action_history(second)


def test_per_agent_streams_do_not_depend_on_draw_order():
    model = build_model(seed=9, per_agent_streams=True)
    a, b = model.believers[0], model.believers[1]

    first = model.action_rng(a, 2).random()
    model.action_rng(b, 2).random()
    again = model.action_rng(a, 2).random()

    assert first == again
    assert model.action_rng(a, 3).random() != first


def test_per_agent_streams_reproducible_run():
    first = build_model(seed=9, end=5, per_agent_streams=True)
    first.run()
    second = build_model(seed=9, end=5, per_agent_streams=True)
    second.run()
    assert action_history(first) == action_history(second)


def test_mean_activations_and_performer_counts():
    model = build_model()
    model.run()
    means = model.mean_activations(3)
    counts = model.performer_counts(3)

    assert set(means) == {"b1", "b2"}
    for name, value in means.items():
        belief = next(b for b in model.beliefs if b.name == name)
        expected = sum(a.activations[3][belief] for a in model.believers) / 4
        assert value == pytest.approx(expected)
    assert set(counts) == {"good", "bad"}
    assert sum(counts.values()) == 4


def test_lookups_by_uuid():
    model = build_model()
    agent = model.believers[0]
    assert model.agent_by_uuid()[agent.uuid] is agent
    assert model.belief_by_uuid()[model.beliefs[0].uuid] is model.beliefs[0]
    assert model.behaviour_by_uuid()[model.behaviours[1].uuid] is model.behaviours[1]


def test_friendship_graph():
    model = build_model(n=3)
    graph = model.friendship_graph()
    assert graph.number_of_nodes() == 3
    assert graph.number_of_edges() == 6
    a, b = model.believers[0], model.believers[1]
    assert graph[a.uuid][b.uuid]["weight"] == 0.5


def test_finished_model_refuses_to_run_again():
    model = build_model(seed=1, end=4)
    model.run()
    before = action_history(model)

    with pytest.raises(RunStateError):
        model.run()
    with pytest.raises(RunStateError):
        model.step()

    assert model.state is RunState.FINISHED
    assert action_history(model) == before


def test_failed_model_refuses_to_step():
    model = build_model()
    broken = model.believers[2]
    del broken.deltas[model.beliefs[1]]
    with pytest.raises(MissingDeltaError):
        model.step()
    written = {a.uuid: dict(a.activations.get(1, {})) for a in model.believers}

    broken.deltas[model.beliefs[1]] = 0.9
    with pytest.raises(RunStateError):
        model.step()

    assert model.state is RunState.FAILED
    assert {a.uuid: dict(a.activations.get(1, {})) for a in model.believers} == written


def test_tick_refuses_a_time_already_ticked():
    model = build_model(end=3)
    model.tick(1)
    first = [a.actions[1] for a in model.believers]

    with pytest.raises(RunStateError):
        model.tick(1)

    assert [a.actions[1] for a in model.believers] == first
    model.tick(2)
    assert all(2 in a.actions for a in model.believers)


def test_unseeded_per_agent_streams_are_not_fixed():
    first = build_model(seed=None, per_agent_streams=True)
    second = build_model(seed=None, per_agent_streams=True)
    a1, a2 = first.believers[0], second.believers[0]

    assert first.stream_seed != second.stream_seed
    assert first.action_rng(a1, 1).random() == first.action_rng(a1, 1).random()
    assert first.action_rng(a1, 1).random() != second.action_rng(a2, 1).random()


def test_seeded_stream_seed_is_the_seed():
    assert build_model(seed=13, per_agent_streams=True).stream_seed == 13
