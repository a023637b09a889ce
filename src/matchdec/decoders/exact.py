# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Exact global MWPM decoder.

The decoder computes the shortest-path distance between every pair of fired
detectors (and the boundary, if their number is odd), hands the resulting complete
graph to an exact :class:`~.matching.PerfectMatchingSolver` and flips the
observables along the shortest path of every matched pair.

The cost of the pairwise searches grows quadratically with the number of fired
detectors. The decoder is intended for small graphs, for residual syndromes left
over by other decoders and as a reference for testing.
"""

from __future__ import annotations

from typing import Optional, Sequence

from matchdec import syngraph
from matchdec.decoders import decoderbase
from matchdec.decoders.matching import PerfectMatchingSolver, RustworkxBlossomSolver
from matchdec.syngraph import distance


class ExactDecoder(decoderbase.DecoderInterface, decoderbase.MatchingBackend):
    """Exact minimum-weight perfect matching over the whole decoding graph.

    The decoder can also be used as (dense) matching backend, e.g. for
    :class:`.sliding.SlidingWindowDecoder`.

    .. automethod:: __init__
    """

    #: Solver for the matching problem on the complete graph
    solver: PerfectMatchingSolver

    def __init__(
        self,
        graph: syngraph.DecodingGraph,
        solver: Optional[PerfectMatchingSolver] = None,
    ):
        """Create a new decoder.

        Args:
            graph: The decoding graph.
            solver: Solver for the complete graph. Defaults to
                :class:`~.matching.RustworkxBlossomSolver`.
        """
        self.graph = graph
        self.solver = RustworkxBlossomSolver() if solver is None else solver

    def _match(
        self, detectors: Sequence[int], trace: decoderbase.TraceSink
    ) -> tuple[list[int], list[distance.DijkstraResult], list[tuple[int, int]]]:
        """Return nodes, shortest-path searches and matched node positions."""
        nodes = list(detectors)
        if len(nodes) % 2 == 1:
            nodes.append(self.graph.boundary_idx)
        searches = []
        edges = []
        for i, src in enumerate(nodes):
            search = distance.dijkstra(self.graph, src, targets=nodes[i + 1 :])
            searches.append(search)
            for j in range(i + 1, len(nodes)):
                if search.reached(nodes[j]):
                    edges.append((i, j, int(search.dist[nodes[j]])))
        pairs = self.solver.solve(len(nodes), edges)
        if trace.enabled:
            trace.write(
                "exact: matched "
                + ", ".join(f"{nodes[i]}-{nodes[j]}" for i, j in pairs)
            )
        return nodes, searches, pairs

    def solve(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> list[tuple[int, int]]:
        """Match fired detectors.

        See :meth:`.decoderbase.MatchingBackend.solve`.
        """
        nodes, _, pairs = self._match(detectors, trace)
        return [(nodes[i], nodes[j]) for i, j in pairs]

    def decode(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> decoderbase.DecodeResult:
        """Decode fired detectors.

        See :meth:`.decoderbase.DecoderInterface.decode`.

        Raises:
            DecoderInternalError: if no perfect matching exists (e.g. a fired
                detector cannot reach any partner).
        """
        result = self._empty_result()
        if len(detectors) == 0:
            return result
        nodes, searches, pairs = self._match(detectors, trace)
        for i, j in pairs:
            path = distance.dijkstra_path(searches[i].prev, nodes[i], nodes[j])
            result.toggle(self.graph.path_observables(path))
        return result
