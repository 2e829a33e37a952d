import pytest

from model import Behaviour, Belief, BeliefSpreadModel


class SequenceRandom:
    """Returns the given values in order from random()."""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


@pytest.fixture
def model():
    return BeliefSpreadModel(seed=42)


@pytest.fixture
def make_agent(model):
    return model.add_agent


@pytest.fixture
def friends_acting(make_agent):
    """
    An agent with two friends (weights 0.5 and 1.0) who performed b1 and b2
    at time 2, and a belief perceiving b1 at 0.2 and b2 at 0.3.
    Pressure on the belief is 0.2.
    """
    agent = make_agent()
    f1 = make_agent()
    f2 = make_agent()
    b1 = Behaviour.new("b1")
    b2 = Behaviour.new("b2")
    f1.actions[2] = b1
    f2.actions[2] = b2
    belief = Belief.new("b")
    belief.perception[b1] = 0.2
    belief.perception[b2] = 0.3
    agent.friends[f1] = 0.5
    agent.friends[f2] = 1.0
    return agent, belief, (b1, b2)
