"""Shared helpers for driving models through simple dives."""

import pytest


def run_at_depth(model, depth, minutes, step=1.0, gas_mix=None):
    """Hold a model at depth for minutes, advancing loadings and time in steps."""
    state = model.get_dive_state()
    model.update_dive_state(depth=depth, gas_mix=gas_mix)
    elapsed = 0.0
    t = state.time
    while elapsed < minutes - 1e-9:
        dt = min(step, minutes - elapsed)
        model.advance_loadings(dt)
        elapsed += dt
        t += dt
        model.update_dive_state(time=t)
    return model


@pytest.fixture
def dive():
    """The run_at_depth helper as a fixture."""
    return run_at_depth
