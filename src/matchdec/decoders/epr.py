# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
r"""Hierarchical decoder for lattice surgery between two hardware substrates.

When a logical patch on a fast substrate is merged with a patch on a slow
substrate (e.g. via distributed EPR pairs), the fast side completes many
*sub-rounds* of syndrome extraction during one *super-round* of the slow side.
The :class:`EprDecoder` splits decoding accordingly:

* The *inner* decoder is a :class:`.sliding.SlidingWindowDecoder` for the stream of
  fast sub-rounds.
* The *outer* decoder is an :class:`.exact.ExactDecoder` for the slow substrate and
  every detector that the inner decoder could not resolve.

Detectors which exist on both sides are called *bridging* detectors. The inner
decoder must not match them to its boundary (the boundary of the fast patch is
where the slow patch begins). Any bridging detector which the inner decoder leaves
unresolved is escalated to the outer decoder.

Detector coordinates
--------------------

All three circuits (global, inner and outer) annotate detectors with coordinates

* ``coords[1]``: overall round (used to find the first round of a circuit),
* ``coords[2]``: base detector (identifies a check across rounds and circuits),
* ``coords[3]``: super-round,
* ``coords[4]``: sub-round within the super-round.

The correspondence between global, inner and outer detector indices is computed
once from these coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dfield
from typing import Optional, Sequence

from matchdec import syngraph
from matchdec.decoders import decoderbase
from matchdec.decoders.exact import ExactDecoder
from matchdec.decoders.matching import PerfectMatchingSolver
from matchdec.decoders.sliding import SlidingWindowDecoder
from matchdec.exceptions import ConfigurationError, DecoderInternalError

#: Coordinate holding the overall round of a detector.
ROUND_COORD_IDX = 1
#: Coordinate holding the base detector.
BASE_DETECTOR_IDX = 2
#: Coordinate holding the super-round.
SUPER_ROUND_IDX = 3
#: Coordinate holding the sub-round.
SUB_ROUND_IDX = 4


@dataclass(slots=True, kw_only=True)
class DetectorMap:
    """Correspondence between global, inner and outer detector indices.

    This is a dataclass.
    """

    #: Global index -> index in the inner stream
    global_to_inner: dict[int, int] = dfield(default_factory=dict)
    #: Global index -> index in the outer graph
    global_to_outer: dict[int, int] = dfield(default_factory=dict)
    #: Inner stream index -> outer index (bridging detectors only)
    inner_to_outer: dict[int, int] = dfield(default_factory=dict)
    #: Number of inner detectors in each sub-round
    inner_detectors_per_round: int = 0
    #: Number of outer detectors in each super-round
    outer_detectors_per_round: int = 0

    def is_bridging(self, detector: int) -> bool:
        """Whether a global detector exists on both sides."""
        return detector in self.global_to_inner and detector in self.global_to_outer


@dataclass(slots=True, kw_only=True)
class EprDecodeReport:
    """Intermediate results of one call to :meth:`EprDecoder.decode_detailed`.

    This is a dataclass.
    """

    #: Combined result
    result: decoderbase.DecodeResult
    #: Fired detectors passed to the inner decoder (inner stream indices)
    inner_detectors: list[int]
    #: Inner detectors which the inner decoder left unresolved
    escalated: list[int]
    #: Fired detectors passed to the outer decoder (outer indices)
    outer_detectors: list[int]


def _round_coord(vertex: syngraph.Vertex, idx: int) -> int:
    if len(vertex.coords) <= idx:
        raise ConfigurationError(
            f"Detector {vertex.vertex_idx} has {len(vertex.coords)} coordinates, "
            f"expected at least {SUB_ROUND_IDX + 1}"
        )
    return round(vertex.coords[idx])


def _first_round_bases(graph: syngraph.DecodingGraph) -> dict[int, int]:
    """Map base detector -> position within the first round of ``graph``."""
    bases: dict[int, int] = {}
    for vertex in graph.vertices:
        if vertex.is_boundary or _round_coord(vertex, ROUND_COORD_IDX) > 0:
            continue
        base = _round_coord(vertex, BASE_DETECTOR_IDX)
        if base in bases:
            raise ConfigurationError(
                f"Base detector {base} occurs twice in the first round"
            )
        bases[base] = len(bases)
    return bases


def build_detector_map(
    global_graph: syngraph.DecodingGraph,
    inner_graph: syngraph.DecodingGraph,
    outer_graph: syngraph.DecodingGraph,
    n_sub_rounds: int,
) -> DetectorMap:
    """Compute the correspondence between global, inner and outer detectors.

    Args:
        global_graph: Decoding graph of the whole experiment.
        inner_graph: Local decoding graph of the fast substrate.
        outer_graph: Decoding graph of the slow substrate and bridging checks.
        n_sub_rounds: Number of sub-rounds per super-round.

    Raises:
        ConfigurationError: if a global detector has no counterpart on either
            side, or a detector lacks the required coordinates.
    """
    inner_bases = _first_round_bases(inner_graph)
    outer_bases = _first_round_bases(outer_graph)
    dmap = DetectorMap(
        inner_detectors_per_round=len(inner_bases),
        outer_detectors_per_round=len(outer_bases),
    )
    for vertex in global_graph.vertices:
        if vertex.is_boundary:
            continue
        base = _round_coord(vertex, BASE_DETECTOR_IDX)
        super_round = _round_coord(vertex, SUPER_ROUND_IDX)
        sub_round = _round_coord(vertex, SUB_ROUND_IDX)
        if base not in inner_bases and base not in outer_bases:
            raise ConfigurationError(
                f"Base detector {base} of global detector {vertex.vertex_idx} "
                "exists in neither the inner nor the outer circuit"
            )
        if base in inner_bases:
            inner_round = super_round * n_sub_rounds + sub_round
            dmap.global_to_inner[vertex.vertex_idx] = (
                inner_round * dmap.inner_detectors_per_round + inner_bases[base]
            )
        if base in outer_bases:
            outer_idx = super_round * dmap.outer_detectors_per_round + outer_bases[base]
            if outer_idx >= outer_graph.n_detectors:
                raise ConfigurationError(
                    f"Global detector {vertex.vertex_idx} maps to outer detector "
                    f"{outer_idx}, but the outer graph has only "
                    f"{outer_graph.n_detectors} detectors"
                )
            dmap.global_to_outer[vertex.vertex_idx] = outer_idx
        if dmap.is_bridging(vertex.vertex_idx):
            dmap.inner_to_outer[dmap.global_to_inner[vertex.vertex_idx]] = outer_idx
    return dmap


class EprDecoder(decoderbase.DecoderInterface):
    """Two-level decoder for a merge between a fast and a slow substrate.

    For an overview, see :mod:`matchdec.decoders.epr`.

    .. automethod:: __init__
    """

    #: Correspondence between detector indices
    detector_map: DetectorMap
    #: Sliding-window decoder for the fast substrate
    inner: SlidingWindowDecoder
    #: Exact decoder for the slow substrate
    outer: ExactDecoder

    def __init__(
        self,
        global_graph: syngraph.DecodingGraph,
        inner_graph: syngraph.DecodingGraph,
        outer_graph: syngraph.DecodingGraph,
        *,
        n_super_rounds: int,
        n_sub_rounds: int,
        commit_size: int,
        window_size: int,
        inner_backend: Optional[decoderbase.MatchingBackend] = None,
        outer_solver: Optional[PerfectMatchingSolver] = None,
    ):
        """Create a new decoder.

        Args:
            global_graph: Decoding graph of the whole experiment (only used to
                translate detector indices).
            inner_graph: Local decoding graph of the fast substrate, covering
                ``window_size + 1`` sub-rounds.
            outer_graph: Decoding graph of the slow substrate and the bridging
                checks.
            n_super_rounds: Number of super-rounds.
            n_sub_rounds: Number of sub-rounds per super-round.
            commit_size: Commit size of the inner decoder (in sub-rounds).
            window_size: Window size of the inner decoder (in sub-rounds).
            inner_backend: Matching backend of the inner decoder.
            outer_solver: Perfect matching solver of the outer decoder.

        Raises:
            ConfigurationError: if detectors cannot be mapped or the inner
                decoder parameters are inconsistent.
        """
        if n_super_rounds <= 0 or n_sub_rounds <= 0:
            raise ConfigurationError("Numbers of rounds must be positive")
        for side, graph in (("inner", inner_graph), ("outer", outer_graph)):
            if graph.n_observables > global_graph.n_observables:
                raise ConfigurationError(
                    f"The {side} graph has {graph.n_observables} observables, "
                    f"the global graph only {global_graph.n_observables}"
                )
        self.graph = global_graph
        self.detector_map = build_detector_map(
            global_graph, inner_graph, outer_graph, n_sub_rounds
        )
        if self.detector_map.inner_detectors_per_round == 0:
            raise ConfigurationError("The inner circuit has no first-round detectors")
        self.inner = SlidingWindowDecoder(
            inner_graph,
            commit_size=commit_size,
            window_size=window_size,
            detectors_per_round=self.detector_map.inner_detectors_per_round,
            total_rounds=n_super_rounds * n_sub_rounds,
            backend=inner_backend,
        )
        self.outer = ExactDecoder(outer_graph, outer_solver)
        self._do_not_commit = frozenset(self.detector_map.inner_to_outer)

    def split(self, detectors: Sequence[int]) -> tuple[list[int], set[int]]:
        """Split global fired detectors into inner and outer parts.

        Returns:
            Sorted inner stream indices and the set of outer indices whose bit is
            set. Detectors without inner replica flip their outer bit.
        """
        dmap = self.detector_map
        inner = []
        outer: set[int] = set()
        for det in detectors:
            if det in dmap.global_to_inner:
                inner.append(dmap.global_to_inner[det])
            else:
                outer ^= {dmap.global_to_outer[det]}
        return sorted(inner), outer

    def decode_detailed(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> EprDecodeReport:
        """Decode and return intermediate results as well."""
        inner_dets, outer_bits = self.split(detectors)
        if trace.enabled:
            trace.write(f"inner: {inner_dets}")
        inner_result, remaining = self.inner.decode_stream(
            inner_dets, trace.nested(), do_not_commit=self._do_not_commit
        )
        for det in remaining:
            if det not in self.detector_map.inner_to_outer:
                raise DecoderInternalError(
                    f"Inner detector {det} was neither committed nor escalated"
                )
            outer_bits ^= {self.detector_map.inner_to_outer[det]}
        outer_dets = sorted(outer_bits)
        if trace.enabled:
            trace.write(f"escalated: {remaining}")
            trace.write(f"outer: {outer_dets}")
        outer_result = self.outer.decode(outer_dets, trace.nested())

        result = self._empty_result()
        result.toggle(inner_result.flipped())
        result.toggle(outer_result.flipped())
        return EprDecodeReport(
            result=result,
            inner_detectors=inner_dets,
            escalated=remaining,
            outer_detectors=outer_dets,
        )

    def decode(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> decoderbase.DecodeResult:
        """Decode fired detectors of the global circuit.

        See :meth:`.decoderbase.DecoderInterface.decode`.
        """
        return self.decode_detailed(detectors, trace).result
