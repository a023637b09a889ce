# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
import numpy as np
import pytest

from matchdec.syngraph import DecodingGraph
from matchdec.syngraph.dem import ErrorDecl


def make_stream_graph(
    n_rounds: int,
    detectors_per_round: int,
    p_space: float = 0.05,
    p_time: float = 0.05,
    p_boundary: float = 0.05,
) -> DecodingGraph:
    """Decoding graph of a repetition-code-like memory experiment.

    Detector ``i`` of round ``t`` has index ``t * detectors_per_round + i``.
    Neighbouring detectors of a round and the same detector in consecutive rounds
    are connected. The first detector of each round is connected to the boundary
    by an edge flipping observable 0, the last one by an edge flipping nothing.
    """
    n = detectors_per_round
    errors = []
    for t in range(n_rounds):
        errors.append(ErrorDecl((t * n,), p_boundary, frozenset({0})))
        errors.append(ErrorDecl((t * n + n - 1,), p_boundary, frozenset()))
        for i in range(n - 1):
            errors.append(ErrorDecl((t * n + i, t * n + i + 1), p_space))
        if t + 1 < n_rounds:
            for i in range(n):
                errors.append(ErrorDecl((t * n + i, (t + 1) * n + i), p_time))
    return DecodingGraph.from_declarations(
        [], errors, num_detectors=n_rounds * n, num_observables=1
    )


@pytest.fixture(scope="module")
def stable_rgen():
    return np.random.RandomState(seed=123123456)


@pytest.fixture
def stream_graph():
    """Factory for decoding graphs of repetition-code-like streams."""
    return make_stream_graph
