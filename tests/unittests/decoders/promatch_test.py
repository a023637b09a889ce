# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit-tests for the :mod:`matchdec.decoders.promatch` module."""
import numpy as np
import pytest as pt

from matchdec.decoders import ExactDecoder, ListTrace, PromatchDecoder
from matchdec.syngraph import DecodingGraph
from matchdec.syngraph.dem import ErrorDecl


@pt.fixture
def line(stream_graph) -> DecodingGraph:
    """Detectors 0 - 1 - ... - 7 in a line."""
    return stream_graph(n_rounds=1, detectors_per_round=8)


@pt.mark.parametrize(
    "fired, removed",
    [
        ([], []),
        ([2, 3], [(2, 3)]),
        ([2, 5], []),
        # Removing either pair would strand the third detector
        ([2, 3, 4], []),
        ([1, 2, 3, 4], [(1, 2), (3, 4)]),
        ([0, 1, 3, 4, 6], [(0, 1), (3, 4)]),
    ],
)
def test_reduce(line, fired, removed):
    assert PromatchDecoder(ExactDecoder(line)).reduce(fired) == removed


def test_decode_with_remaining_detectors(line):
    exact = ExactDecoder(line)
    trace = ListTrace()
    fired = [0, 1, 3, 4, 6]
    assert PromatchDecoder(exact).decode(fired, trace) == exact.decode(fired)
    assert trace.lines[:2] == ["promatch: pair 0-1", "promatch: pair 3-4"]
    assert trace.lines[2] == "  exact: matched 6-8"


def test_edge_observables():
    graph = DecodingGraph.from_declarations(
        [],
        [
            ErrorDecl((0, 1), 0.1, frozenset({0})),
            ErrorDecl((0,), 0.01),
            ErrorDecl((1,), 0.01),
        ],
        num_observables=1,
    )
    assert PromatchDecoder(ExactDecoder(graph)).decode([0, 1]).flipped() == [0]


def test_disabled_is_transparent(stream_graph, stable_rgen):
    graph = stream_graph(n_rounds=3, detectors_per_round=5)
    exact = ExactDecoder(graph)
    promatch = PromatchDecoder(exact, enabled=False)
    for _ in range(100):
        fired = [int(d) for d in np.flatnonzero(stable_rgen.rand(graph.n_detectors) < 0.2)]
        assert promatch.decode(fired) == exact.decode(fired)
    trace = ListTrace()
    promatch.decode([0, 1], trace)
    assert trace.lines == ["  exact: matched 0-1"]
