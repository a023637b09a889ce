# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Minimum-weight perfect matching solvers.

MWPM is short for min-weight perfect matching.

Two levels of solvers are used in this package:

* :class:`PerfectMatchingSolver` works on an explicit, complete weighted graph.
  This is what :class:`.exact.ExactDecoder` feeds with pairwise shortest-path
  distances.
* :class:`.decoderbase.MatchingBackend` works directly on fired detectors of a
  :class:`~matchdec.syngraph.DecodingGraph`. :class:`PyMatchingBackend` uses the
  sparse blossom algorithm from PyMatching, and :class:`.exact.ExactDecoder` is a
  dense backend as well.
"""

from __future__ import annotations

import abc
from typing import Sequence

import numpy as np
import pymatching  # type: ignore
import rustworkx as rx

from matchdec import syngraph
from matchdec.decoders import decoderbase
from matchdec.exceptions import DecoderInternalError
from matchdec.syngraph import weights


class PerfectMatchingSolver(metaclass=abc.ABCMeta):
    """Exact minimum-weight perfect matching on a weighted graph (abstract class)."""

    @abc.abstractmethod
    def solve(
        self, n_nodes: int, edges: Sequence[tuple[int, int, int]]
    ) -> list[tuple[int, int]]:
        """Find a minimum-weight perfect matching.

        Args:
            n_nodes: Number of nodes (labelled ``0, ..., n_nodes - 1``).
            edges: Available edges as ``(a, b, weight)`` with non-negative integer
                weights.

        Returns:
            The matched pairs ``(a, b)`` with ``a < b``, sorted.

        Raises:
            DecoderInternalError: if the graph has no perfect matching.
        """


class RustworkxBlossomSolver(PerfectMatchingSolver):
    """Exact blossom algorithm provided by rustworkx.

    :func:`rustworkx.max_weight_matching` maximizes the total weight. Weights are
    therefore replaced by :math:`C - w` with :math:`C` larger than every weight,
    and maximum cardinality is enforced. Among all perfect matchings, the one with
    maximal inverted weight is the one with minimal original weight.
    """

    def solve(
        self, n_nodes: int, edges: Sequence[tuple[int, int, int]]
    ) -> list[tuple[int, int]]:  # noqa: D102
        if n_nodes == 0:
            return []
        if n_nodes % 2 == 1:
            raise DecoderInternalError(f"Cannot perfectly match {n_nodes} nodes")
        graph = rx.PyGraph(multigraph=False)
        graph.add_nodes_from(range(n_nodes))
        if edges:
            offset = max(w for _, _, w in edges) + 1
            graph.add_edges_from([(a, b, offset - w) for a, b, w in edges])
        matching = rx.max_weight_matching(
            graph, max_cardinality=True, weight_fn=lambda w: int(w)
        )
        pairs = sorted((min(a, b), max(a, b)) for a, b in matching)
        if 2 * len(pairs) != n_nodes:
            raise DecoderInternalError(
                f"No perfect matching found ({len(pairs)} pairs for {n_nodes} nodes)"
            )
        return pairs


class PyMatchingBackend(decoderbase.MatchingBackend):
    """Sparse min-weight perfect matching provided by PyMatching.

    The decoding graph is translated into a :class:`pymatching.Matching` once, at
    construction. Edges to the boundary become boundary edges in PyMatching.

    .. automethod:: __init__
    """

    #: PyMatching's matching graph
    mgraph: pymatching.Matching

    def __init__(self, graph: syngraph.DecodingGraph):
        """Translate the decoding graph into PyMatching's format."""
        self.graph = graph
        self.mgraph = pymatching.Matching()
        weights.check_weights_sane(np.array([e.weight for e in graph.edges]))
        boundary = graph.boundary_idx
        for edge in graph.edges:
            kw = dict(
                fault_ids=set(edge.observables),
                weight=edge.weight,
                error_probability=edge.probability,
            )
            match edge.vertices:
                case (a, b) if b == boundary:
                    self.mgraph.add_boundary_edge(a, **kw)
                case (a, b):
                    self.mgraph.add_edge(a, b, **kw)

    def solve(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> list[tuple[int, int]]:
        """Match fired detectors.

        See :meth:`.decoderbase.MatchingBackend.solve`.
        """
        if len(detectors) == 0:
            return []
        n_nodes = self.mgraph.num_detectors
        if detectors[-1] >= n_nodes:
            raise DecoderInternalError(
                f"Detector {detectors[-1]} is not connected to any edge"
            )
        syndrome = np.zeros(n_nodes, dtype=np.uint8)
        syndrome[list(detectors)] = 1
        try:
            matched = self.mgraph.decode_to_matched_dets_array(syndrome)
        except ValueError as exc:
            raise DecoderInternalError(f"PyMatching failed: {exc}") from exc
        boundary = self.graph.boundary_idx
        pairs = []
        for a, b in matched:
            a, b = int(a), int(b)
            pairs.append((a, boundary if b < 0 else b))
        if trace.enabled:
            trace.write(f"pymatching: {pairs}")
        return pairs
