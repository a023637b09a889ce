# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit-tests for the :mod:`matchdec.decoders.exact` module."""
import itertools

import numpy as np
import pytest as pt

from matchdec.decoders import ExactDecoder, ListTrace
from matchdec.exceptions import DecoderInternalError
from matchdec.syngraph import DecodingGraph
from matchdec.syngraph.dem import ErrorDecl
from matchdec.syngraph.distance import dijkstra


def _all_matchings(nodes: list[int]):
    if not nodes:
        yield []
        return
    first = nodes[0]
    for i in range(1, len(nodes)):
        rest = nodes[1:i] + nodes[i + 1 :]
        for matching in _all_matchings(rest):
            yield [(first, nodes[i])] + matching


def _brute_force(graph: DecodingGraph, detectors: list[int]) -> set[frozenset]:
    """Observable parities of all minimum-weight perfect matchings."""
    nodes = list(detectors)
    if len(nodes) % 2:
        nodes.append(graph.boundary_idx)
    dist = {v: dijkstra(graph, v).dist for v in nodes}
    best, parities = None, set()
    for matching in _all_matchings(nodes):
        weight = sum(int(dist[a][b]) for a, b in matching)
        flipped: set[int] = set()
        for a, b in matching:
            flipped ^= graph.chain_observables(a, b)
        if best is None or weight < best:
            best, parities = weight, {frozenset(flipped)}
        elif weight == best:
            parities.add(frozenset(flipped))
    return parities


def _random_graph(rgen: np.random.RandomState, n: int = 8) -> DecodingGraph:
    errors = []
    pairs = {(i, (i + 1) % n) for i in range(n)}
    for _ in range(n):
        a, b = rgen.choice(n, size=2, replace=False)
        pairs.add((int(a), int(b)))
    for a, b in sorted(pairs):
        obs = frozenset(int(o) for o in np.flatnonzero(rgen.rand(2) < 0.3))
        errors.append(ErrorDecl((a, b), float(rgen.uniform(0.001, 0.3)), obs))
    for v in (0, n // 2):
        errors.append(
            ErrorDecl((v,), float(rgen.uniform(0.001, 0.3)), frozenset({v % 2}))
        )
    return DecodingGraph.from_declarations(
        [], errors, num_detectors=n, num_observables=2
    )


def test_concrete_scenario():
    graph = DecodingGraph.from_declarations(
        [],
        [
            ErrorDecl((0, 1), 0.01, frozenset({0})),
            ErrorDecl((0,), 0.02, frozenset()),
            ErrorDecl((1,), 0.02, frozenset({1})),
        ],
        num_detectors=2,
        num_observables=2,
    )
    dec = ExactDecoder(graph)
    assert dec.decode([0, 1]).flipped() == [0]
    # A single detector goes to the boundary
    assert dec.decode([1]).flipped() == [1]
    assert dec.decode([0]).flipped() == []
    assert dec.decode([]).flipped() == []


def test_parity_matches_brute_force(stable_rgen):
    checked = 0
    for _ in range(40):
        graph = _random_graph(stable_rgen)
        dec = ExactDecoder(graph)
        for n_fired in range(1, 7):
            fired = sorted(
                int(v) for v in stable_rgen.choice(8, size=n_fired, replace=False)
            )
            parities = _brute_force(graph, fired)
            if len(parities) > 1:
                # Several optimal matchings with different parity
                continue
            assert frozenset(dec.decode(fired).flipped()) in parities
            checked += 1
    assert checked > 100


def test_solve_pairs_every_detector(stream_graph):
    graph = stream_graph(n_rounds=3, detectors_per_round=4)
    dec = ExactDecoder(graph)
    fired = [0, 5, 6, 11]
    pairs = dec.solve(fired)
    matched = sorted(v for pair in pairs for v in pair)
    assert matched == fired
    pairs = dec.solve([1, 5, 6])
    assert graph.boundary_idx in {v for pair in pairs for v in pair}


def test_trace(stream_graph):
    graph = stream_graph(n_rounds=1, detectors_per_round=4)
    trace = ListTrace()
    ExactDecoder(graph).decode([1, 2], trace)
    assert trace.lines == ["exact: matched 1-2"]


def test_no_perfect_matching():
    # Detectors 0 and 1 are connected, 2 and 3 are connected, no boundary edges
    graph = DecodingGraph.from_declarations(
        [], [ErrorDecl((0, 1), 0.1), ErrorDecl((2, 3), 0.1)], num_detectors=4
    )
    dec = ExactDecoder(graph)
    assert dec.decode([0, 1]).flipped() == []
    with pt.raises(DecoderInternalError, match="No perfect matching"):
        dec.decode([0, 2])
    with pt.raises(DecoderInternalError):
        dec.decode([0])


@pt.mark.parametrize("n_fired", [2, 3, 4])
def test_is_reentrant(stream_graph, n_fired):
    graph = stream_graph(n_rounds=4, detectors_per_round=5)
    dec = ExactDecoder(graph)
    for fired in itertools.combinations([0, 3, 7, 12, 16], n_fired):
        assert dec.decode(list(fired)) == dec.decode(list(fired))
