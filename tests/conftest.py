import pytest


@pytest.fixture
def three_arms():
    return [
        {"id": 0, "family": "normal", "parameters": [1.0, 1.0]},
        {"id": 1, "family": "bernoulli", "parameters": [0.7]},
        {"id": 2, "family": "exponential", "parameters": [2.0]},
    ]


@pytest.fixture
def two_arms():
    return [
        {"id": 10, "family": "bernoulli", "parameters": [0.2]},
        {"id": 20, "family": "bernoulli", "parameters": [0.8]},
    ]
