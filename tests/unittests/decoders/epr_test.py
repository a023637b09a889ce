# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit-tests for the :mod:`matchdec.decoders.epr` module.

The fixtures model a merge of a fast patch (checks 0 and 1) with a slow patch
(checks 1 and 2). Check 1 is measured on both sides.
"""
import numpy as np
import pytest as pt

from matchdec.decoders import (
    ExactDecoder,
    FpdConfig,
    FpdDecoder,
    ListTrace,
    PromatchDecoder,
)
from matchdec.decoders.epr import EprDecoder, build_detector_map
from matchdec.exceptions import ConfigurationError
from matchdec.syngraph import DecodingGraph
from matchdec.syngraph.dem import DetectorDecl, ErrorDecl

N_SUPER, N_SUB = 2, 2


def _chain_graph(n_rounds: int, bases: tuple[int, int], sub_round: bool):
    """Two checks per round, connected to each other, to the boundary and in time.

    The first check's boundary edge flips observable 0.
    """
    decls, errors = [], []
    for r in range(n_rounds):
        for p, base in enumerate(bases):
            coords = (0, r, base, 0, r) if sub_round else (0, r, base, r, 0)
            decls.append(DetectorDecl(2 * r + p, coords))
        errors.append(ErrorDecl((2 * r,), 0.1, frozenset({0})))
        errors.append(ErrorDecl((2 * r + 1,), 0.1))
        errors.append(ErrorDecl((2 * r, 2 * r + 1), 0.1))
        if r + 1 < n_rounds:
            errors.append(ErrorDecl((2 * r, 2 * r + 2), 0.1))
            errors.append(ErrorDecl((2 * r + 1, 2 * r + 3), 0.1))
    return DecodingGraph.from_declarations(
        decls, errors, num_detectors=2 * n_rounds, num_observables=1
    )


def _global_graph(extra_base=None) -> DecodingGraph:
    decls = []
    for s in range(N_SUPER):
        for k in range(N_SUB):
            rnd = s * N_SUB + k
            decls.append(DetectorDecl(len(decls), (0, rnd, 0, s, k)))
            decls.append(DetectorDecl(len(decls), (0, rnd, 1, s, k)))
        decls.append(DetectorDecl(len(decls), (0, s * N_SUB + N_SUB - 1, 2, s, 0)))
    if extra_base is not None:
        decls.append(DetectorDecl(len(decls), (0, 0, extra_base, 0, 0)))
    return DecodingGraph.from_declarations(decls, [], num_observables=1)


@pt.fixture
def graphs():
    inner = _chain_graph(3, (0, 1), sub_round=True)
    outer = _chain_graph(N_SUPER, (1, 2), sub_round=False)
    return _global_graph(), inner, outer


@pt.fixture
def decoder(graphs) -> EprDecoder:
    global_graph, inner, outer = graphs
    return EprDecoder(
        global_graph,
        inner,
        outer,
        n_super_rounds=N_SUPER,
        n_sub_rounds=N_SUB,
        commit_size=1,
        window_size=2,
        inner_backend=ExactDecoder(inner),
    )


class TestDetectorMap:
    def test_mapping(self, graphs):
        dmap = build_detector_map(*graphs, n_sub_rounds=N_SUB)
        assert dmap.inner_detectors_per_round == 2
        assert dmap.outer_detectors_per_round == 2
        assert dmap.global_to_inner == {0: 0, 1: 1, 2: 2, 3: 3, 5: 4, 6: 5, 7: 6, 8: 7}
        assert dmap.global_to_outer == {1: 0, 3: 0, 4: 1, 6: 2, 8: 2, 9: 3}
        assert dmap.inner_to_outer == {1: 0, 3: 0, 5: 2, 7: 2}
        assert dmap.is_bridging(6)
        assert not dmap.is_bridging(0)
        assert not dmap.is_bridging(4)

    def test_unknown_base(self, graphs):
        _, inner, outer = graphs
        with pt.raises(ConfigurationError, match="neither"):
            build_detector_map(_global_graph(extra_base=7), inner, outer, N_SUB)

    def test_missing_coordinates(self, graphs):
        _, inner, outer = graphs
        bare = DecodingGraph.from_declarations([], [], num_detectors=2)
        with pt.raises(ConfigurationError, match="coordinates"):
            build_detector_map(bare, inner, outer, N_SUB)


class TestEprDecoder:
    def test_split(self, decoder):
        inner, outer = decoder.split([0, 4, 6])
        assert inner == [0, 5]
        assert outer == {1}
        # Outer-only detectors of the same outer bit cancel
        assert decoder.split([4, 4]) == ([], set())

    def test_inner_only(self, decoder):
        report = decoder.decode_detailed([0])
        assert report.result.flipped() == [0]
        assert report.inner_detectors == [0]
        assert report.escalated == []
        assert report.outer_detectors == []

    def test_bridging_detector_is_escalated(self, decoder):
        trace = ListTrace()
        report = decoder.decode_detailed([1], trace)
        assert report.escalated == [1]
        assert report.outer_detectors == [0]
        assert report.result.flipped() == [0]
        assert "  hold 1" in trace.lines
        assert trace.lines[-3:-1] == ["escalated: [1]", "outer: [0]"]

    def test_bridging_pair_is_committed(self, decoder):
        report = decoder.decode_detailed([1, 3])
        assert report.escalated == []
        assert report.outer_detectors == []
        assert report.result.flipped() == []

    def test_outer_only(self, decoder):
        report = decoder.decode_detailed([4])
        assert report.inner_detectors == []
        assert report.outer_detectors == [1]
        assert report.result.flipped() == []

    def test_every_inner_detector_committed_or_escalated(self, decoder, stable_rgen):
        n_detectors = decoder.graph.n_detectors
        for _ in range(1000):
            fired = [
                int(d) for d in np.flatnonzero(stable_rgen.rand(n_detectors) < 0.15)
            ]
            trace = ListTrace()
            report = decoder.decode_detailed(fired, trace)
            committed = [
                int(tok)
                for line in trace.lines
                if line.strip().startswith("commit ")
                for tok in line.split()[1:]
                if tok != "B"
            ]
            assert len(committed) == len(set(committed))
            assert not set(committed) & set(report.escalated)
            assert sorted(committed + report.escalated) == report.inner_detectors
            assert set(report.escalated) <= set(decoder.detector_map.inner_to_outer)
            _, outer_bits = decoder.split(fired)
            for det in report.escalated:
                outer_bits ^= {decoder.detector_map.inner_to_outer[det]}
            assert report.outer_detectors == sorted(outer_bits)
            assert report.result.n_observables == 1
            assert decoder.decode(fired) == report.result

    @pt.mark.parametrize(
        "kwargs",
        [
            dict(n_super_rounds=0, n_sub_rounds=N_SUB, commit_size=1, window_size=2),
            dict(n_super_rounds=N_SUPER, n_sub_rounds=N_SUB, commit_size=3, window_size=3),
        ],
    )
    def test_invalid_parameters(self, graphs, kwargs):
        with pt.raises(ConfigurationError):
            EprDecoder(*graphs, **kwargs)

    @pt.mark.parametrize("side", ["inner", "outer"])
    def test_more_observables_than_global(self, graphs, side):
        global_graph, inner, outer = graphs
        extra = DecodingGraph.from_declarations(
            [], [], num_detectors=2, num_observables=2
        )
        if side == "inner":
            inner = extra
        else:
            outer = extra
        with pt.raises(ConfigurationError, match=f"{side} graph has 2 observables"):
            EprDecoder(
                global_graph,
                inner,
                outer,
                n_super_rounds=N_SUPER,
                n_sub_rounds=N_SUB,
                commit_size=1,
                window_size=2,
            )


class TestPreDecoding:
    @pt.mark.parametrize("wrapper", [FpdDecoder, PromatchDecoder])
    def test_global_indices(self, decoder, wrapper):
        accelerated = wrapper(decoder)
        assert accelerated.graph is decoder.graph
        for fired in ([9], [1, 9], [0, 4, 6, 8]):
            assert accelerated.decode(fired) == decoder.decode(fired)

    def test_disabled_accelerators_are_transparent(self, decoder, stable_rgen):
        fpd = FpdDecoder(decoder, FpdConfig(cache_chain_limit=0))
        promatch = PromatchDecoder(decoder, enabled=False)
        n_detectors = decoder.graph.n_detectors
        for _ in range(300):
            fired = [
                int(d) for d in np.flatnonzero(stable_rgen.rand(n_detectors) < 0.15)
            ]
            expected = decoder.decode(fired)
            assert fpd.decode(fired) == expected
            assert promatch.decode(fired) == expected
