"""
Pytest configuration and shared fixtures.

Building and sorting a full recursive trace takes a few seconds, so the honest
traces are session-scoped. Tests that corrupt a trace work on a copy.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to the path so absolute imports work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from protocol.data import InteractionElements  # noqa: E402
from tests.trace_builder import (  # noqa: E402
    BITWISE_INPUTS,
    N_STEPS,
    PEDERSEN_INPUTS,
    RC_VALUES,
    build_recursive_trace,
    make_recursive_air,
)
from witness import RecursiveWitness  # noqa: E402


@pytest.fixture(scope="session")
def recursive_air():
    """First-round recursive AIR matching the honest trace."""
    return make_recursive_air(N_STEPS)


@pytest.fixture(scope="session")
def first_round(recursive_air):
    """(air, trace): honest first-round trace with the sorted columns filled."""
    air, trace = build_recursive_trace(
        N_STEPS,
        pedersen_inputs=PEDERSEN_INPUTS,
        rc_values=RC_VALUES,
        bitwise_inputs=BITWISE_INPUTS,
        air=recursive_air,
    )
    RecursiveWitness().compute_sorted_columns(trace, air)
    return air, trace


@pytest.fixture(scope="session")
def interaction_elements():
    return InteractionElements.random(seed=7)


@pytest.fixture(scope="session")
def full_trace(first_round, interaction_elements):
    """(air, trace): interaction-phase AIR and the honest trace with all 10 columns."""
    air, trace = first_round
    air = air.with_interaction_elements(interaction_elements)
    return air, RecursiveWitness().compute_interaction_columns(trace, air)
