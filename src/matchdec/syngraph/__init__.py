# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
r"""Decoding graph (used by decoders).

The decoding graph describes which detectors are flipped by which possible error.
This information is encoded in a graph because this is the format used by
matching decoders. The graph also carries the probability of each error, its
integer weight and the logical observables it flips.

In most cases, you can use :mod:`matchdec.decoders` and you do not need to interact
with the decoding graph beyond constructing it with :meth:`DecodingGraph.from_dem`
or :meth:`DecodingGraph.from_circuit`.

Implementation
--------------

There is the following basic correspondence between vertices/edges in the graph and
the detector error model:

* Graph vertex = detector (see :class:`Vertex`). One additional vertex, the
  *boundary*, absorbs all errors which flip a single detector. The boundary always
  has the largest index, :attr:`DecodingGraph.boundary_idx` ``= n_vertices - 1``.

* Edge = error mechanism (see :class:`Edge`). An error flipping one detector is an
  edge between that detector and the boundary.

Errors which flip the same pair of detectors are merged into a single edge. Their
probabilities combine with :func:`.weights.merge_probabilities` and the sets of
flipped observables are joined. After merging there is at most one edge per
unordered pair of vertices, so an edge can be identified with its two endpoints
(see :meth:`DecodingGraph.unique_edge`).

The general decoding hypergraph may contain edges with more than two vertices.
All decoders in this package only ever need edges of order two, so the graph
is specialised to pairs of vertices. Errors flipping more than two detectors must
be decomposed by Stim (``decompose_errors=True``) before they reach this module.

A graph is built once per circuit and then frozen: decoders expect that vertices,
edges and weights do not change, and they share one graph between calls.

.. note::

    Detectors carry their coordinates and, derived from them, a colour and a flag
    bit. Decoding logic ignores all three; they are kept for decoders which
    translate between graphs (see :mod:`matchdec.decoders.epr`).
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from dataclasses import field as dfield
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np
import stim  # type: ignore

from matchdec.exceptions import InvariantViolationError, MalformedModelError
from matchdec.syngraph import distance
from matchdec.syngraph import weights as weights_
from matchdec.syngraph.dem import (
    Color,
    DetectorDecl,
    ErrorDecl,
    explain_errors,
    find_observable_only_errors,
    read_dem,
)

#: Weight of edges whose weight has not been quantized yet.
UNQUANTIZED: int = -1

#: Options used to compile a circuit into a graph-like detector error model.
DEM_OPTIONS: dict[str, bool] = dict(
    decompose_errors=True,
    flatten_loops=True,
    allow_gauge_detectors=False,
    approximate_disjoint_errors=False,
    ignore_decomposition_failures=False,
    block_decomposition_from_introducing_remnant_edges=False,
)


@dataclass(slots=True, kw_only=True)
class Vertex:
    """Decoding graph vertex (a detector, or the boundary).

    For a high-level overview, see :mod:`matchdec.syngraph`.

    This is a dataclass.

    .. automethod:: __init__
    """

    #: Linear index of the vertex (equal to the detector index)
    vertex_idx: int
    #: Whether this is the boundary vertex
    is_boundary: bool = False
    #: Colour of the detector
    color: Color = Color.NONE
    #: Whether the detector is a flag detector
    is_flag: bool = False
    #: Absolute coordinates of the detector
    coords: tuple[float, ...] = ()
    #: Neighbouring vertex indices and the edges leading to them
    all_neighbours: list[tuple[int, Edge]] = dfield(default_factory=list)

    def add_edge(self, edge: Edge):
        """Add an adjacent edge."""
        assert all(e is not edge for _, e in self.all_neighbours), "Duplicate edge"
        self.all_neighbours.append((edge.other(self.vertex_idx), edge))

    @property
    def degree(self) -> int:
        """Number of adjacent edges."""
        return len(self.all_neighbours)

    def __repr__(self):  # noqa: D105
        return f"{self.__class__.__name__}({self.vertex_idx=})"


@dataclass(slots=True, kw_only=True)
class Edge:
    """Decoding graph edge (an error mechanism).

    For a high-level overview, see :mod:`matchdec.syngraph`.

    This is a dataclass.

    .. automethod:: __init__
    """

    #: Linear index of the edge
    edge_idx: int
    #: Vertices connected by the edge (the boundary, if any, comes second)
    vertices: tuple[int, int]
    #: Probability that the error occurs
    probability: float
    #: Quantized weight (see :func:`.weights.quantize_weight`)
    weight: int = UNQUANTIZED
    #: Indices of logical observables flipped by the error
    observables: frozenset[int] = frozenset()

    def other(self, vertex_idx: int) -> int:
        """Return the endpoint opposite to ``vertex_idx``."""
        a, b = self.vertices
        if vertex_idx == a:
            return b
        assert vertex_idx == b, f"{vertex_idx} is not an endpoint of {self}"
        return a

    def merge(self, probability: float, observables: Iterable[int]) -> None:
        """Merge an independent error with the same endpoints into this edge."""
        self.probability = weights_.merge_probabilities(self.probability, probability)
        self.observables = self.observables | frozenset(observables)

    def __repr__(self) -> str:  # noqa: D105
        return f"{self.__class__.__name__}({self.edge_idx=}, {self.vertices=})"


class DecodingGraph:
    """Decoding graph.

    For a high-level overview, see :mod:`matchdec.syngraph`.

    Vertices have dense indices starting at zero and the boundary is the last
    vertex. Graphs are usually created with :meth:`from_dem`,
    :meth:`from_circuit` or :meth:`from_declarations`; building one by hand
    works through :meth:`add_vertex` and :meth:`add_error` followed by
    :meth:`freeze`.

    .. automethod:: __init__
    """

    #: Vertices in the graph (indexed by :attr:`Vertex.vertex_idx`)
    vertices: list[Vertex]
    #: Edges in the graph (indexed by :attr:`Edge.edge_idx`)
    edges: list[Edge]
    #: Number of logical observables
    n_observables: int
    #: Whether construction is complete. DO NOT CHANGE THIS.
    _init_complete: bool = False

    def __init__(self, n_observables: int = 0):
        """Create an empty decoding graph.

        Args:
            n_observables: Number of logical observables. It is increased
                automatically if an edge flips an observable with a larger index.
        """
        self.vertices = []
        self.edges = []
        self.n_observables = n_observables
        self._vertex_map: dict[int, Vertex] = {}
        self._boundary: Optional[Vertex] = None

    @classmethod
    def from_declarations(
        cls,
        detectors: Iterable[DetectorDecl],
        errors: Iterable[ErrorDecl],
        *,
        num_detectors: Optional[int] = None,
        num_observables: int = 0,
    ) -> DecodingGraph:
        """Build a frozen decoding graph from flattened declarations.

        Args:
            detectors: Detector declarations (coordinates). Detectors which are not
                declared still get a vertex.
            errors: Error mechanisms, each flipping one or two detectors.
            num_detectors: Total number of detectors. Defaults to one more than the
                largest index seen in ``detectors`` and ``errors``.
            num_observables: Number of logical observables.

        Raises:
            MalformedModelError: if an error flips zero or more than two detectors,
                or a detector is declared twice.
        """
        detectors = list(detectors)
        errors = list(errors)
        if num_detectors is None:
            indices = [d.idx for d in detectors]
            indices += [i for e in errors for i in e.detectors]
            num_detectors = max(indices, default=-1) + 1
        decls: dict[int, DetectorDecl] = {}
        for decl in detectors:
            if decl.idx in decls:
                raise MalformedModelError(f"Detector D{decl.idx} is declared twice")
            decls[decl.idx] = decl
        if decls and max(decls) >= num_detectors:
            raise MalformedModelError(
                f"Detector D{max(decls)} exceeds the number of detectors "
                f"({num_detectors})"
            )

        graph = cls(n_observables=num_observables)
        for idx in range(num_detectors):
            decl = decls.get(idx, DetectorDecl(idx=idx))
            graph.add_vertex(
                idx, coords=decl.coords, color=decl.color, is_flag=decl.is_flag
            )
        graph.add_vertex(num_detectors, is_boundary=True)
        for error in errors:
            graph.add_error(error.detectors, error.probability, error.observables)
        graph.quantize_weights()
        graph.freeze()
        return graph

    @classmethod
    def from_dem(
        cls, dem: stim.DetectorErrorModel, circuit: Optional[stim.Circuit] = None
    ) -> DecodingGraph:
        """Build a frozen decoding graph from a Stim detector error model.

        Args:
            dem: The detector error model. Errors must be decomposed into
                components flipping at most two detectors.
            circuit: The circuit from which ``dem`` was derived. Only used to
                explain malformed errors.

        Raises:
            MalformedModelError: if the model contains errors which flip logical
                observables but no detectors, or errors which cannot be
                represented by an edge.
        """
        bad = find_observable_only_errors(dem)
        if bad.num_errors > 0:
            raise MalformedModelError(
                "Found errors that only flip observables (no detectors):\n"
                + explain_errors(bad, circuit)
            )
        result = read_dem(dem)
        return cls.from_declarations(
            result.detectors,
            result.errors,
            num_detectors=result.num_detectors,
            num_observables=result.num_observables,
        )

    @classmethod
    def from_circuit(cls, circuit: stim.Circuit) -> DecodingGraph:
        """Compile a Stim circuit into a graph-like DEM and build the graph."""
        dem = circuit.detector_error_model(**DEM_OPTIONS)
        return cls.from_dem(dem, circuit)

    def _check_mutable(self):
        if self._init_complete:
            raise InvariantViolationError("The decoding graph is frozen")

    def add_vertex(
        self,
        vertex_idx: int,
        *,
        is_boundary: bool = False,
        coords: Sequence[float] = (),
        color: Color = Color.NONE,
        is_flag: bool = False,
    ) -> Vertex:
        """Add a new vertex.

        Raises:
            MalformedModelError: if ``vertex_idx`` is already in use or a second
                boundary vertex is added.
        """
        self._check_mutable()
        if vertex_idx in self._vertex_map:
            raise MalformedModelError(f"Vertex {vertex_idx} already exists")
        if is_boundary and self._boundary is not None:
            raise MalformedModelError("A decoding graph has exactly one boundary")
        vertex = Vertex(
            vertex_idx=vertex_idx,
            is_boundary=is_boundary,
            coords=tuple(coords),
            color=color,
            is_flag=is_flag,
        )
        self._vertex_map[vertex_idx] = vertex
        self.vertices.append(vertex)
        if is_boundary:
            self._boundary = vertex
        return vertex

    def add_edge(
        self, a: int, b: int, probability: float, observables: Iterable[int] = ()
    ) -> Edge:
        """Add a new edge between two distinct vertices.

        Use :meth:`add_error` to merge with an existing edge instead.

        Raises:
            MalformedModelError: if the vertices are equal or do not exist.
        """
        self._check_mutable()
        if a == b:
            raise MalformedModelError(f"An edge needs two distinct vertices, got {a}")
        for v in (a, b):
            if v not in self._vertex_map:
                raise MalformedModelError(f"Vertex {v} does not exist")
        if self._vertex_map[a].is_boundary:
            a, b = b, a
        edge = Edge(
            edge_idx=len(self.edges),
            vertices=(a, b),
            probability=probability,
            observables=frozenset(observables),
        )
        observables = edge.observables
        if observables:
            self.n_observables = max(self.n_observables, max(observables) + 1)
        self.edges.append(edge)
        self._vertex_map[a].add_edge(edge)
        self._vertex_map[b].add_edge(edge)
        return edge

    def add_error(
        self,
        detectors: Sequence[int],
        probability: float,
        observables: Iterable[int] = (),
    ) -> Optional[Edge]:
        """Add an error mechanism flipping one or two detectors.

        A single detector is paired with the boundary. If an edge between the two
        vertices exists already, the error is merged into it.

        Returns:
            The new or updated edge, or ``None`` if the error has zero probability
            (such errors are skipped with a warning).

        Raises:
            MalformedModelError: if the error flips zero or more than two detectors
                or its probability is not in :math:`[0, 1]`.
        """
        self._check_mutable()
        observables = frozenset(observables)
        if len(detectors) not in (1, 2):
            raise MalformedModelError(
                f"Got error with {len(detectors)} detectors:\n"
                f"\terror prob = {probability}\n"
                f"\tdetectors = {' '.join(map(str, detectors))}\n"
                f"\tobservables = {' '.join(map(str, sorted(observables)))}"
            )
        if not 0 <= probability <= 1:
            raise MalformedModelError(f"Invalid error probability {probability}")
        if probability == 0:
            warnings.warn(
                f"Skipping error with zero probability on detectors {detectors}",
                stacklevel=2,
            )
            return None
        if self._boundary is None:
            raise MalformedModelError("The boundary vertex must be added first")
        a, b = (*detectors, self._boundary.vertex_idx)[:2]
        edge = self.unique_edge(a, b)
        if edge is not None:
            edge.merge(probability, observables)
            if observables:
                self.n_observables = max(self.n_observables, max(observables) + 1)
            return edge
        return self.add_edge(a, b, probability, observables)

    def quantize_weights(self):
        """Compute integer weights from the probabilities of all edges."""
        self._check_mutable()
        if not self.edges:
            return
        weights = weights_.quantize_weights(np.array([e.probability for e in self.edges]))
        for edge, weight in zip(self.edges, weights):
            edge.weight = int(weight)

    def freeze(self):
        """Complete construction.

        Raises:
            MalformedModelError: if vertex indices are not dense, the boundary is
                missing or not the last vertex, or weights are not quantized.
        """
        self._check_mutable()
        if self._boundary is None:
            raise MalformedModelError("The decoding graph has no boundary vertex")
        if sorted(self._vertex_map) != list(range(len(self.vertices))):
            raise MalformedModelError("Vertex indices must be 0, 1, ..., n - 1")
        if self._boundary.vertex_idx != len(self.vertices) - 1:
            raise MalformedModelError("The boundary must be the last vertex")
        if any(e.weight == UNQUANTIZED for e in self.edges):
            raise MalformedModelError("Edge weights have not been quantized")
        self.vertices.sort(key=lambda v: v.vertex_idx)
        self._init_complete = True

    @property
    def n_vertices(self) -> int:
        """Number of vertices, including the boundary."""
        return len(self.vertices)

    @property
    def n_detectors(self) -> int:
        """Number of detectors (vertices other than the boundary)."""
        return len(self.vertices) - 1

    @property
    def boundary_idx(self) -> int:
        """Index of the boundary vertex."""
        assert self._boundary is not None
        return self._boundary.vertex_idx

    def vertex(self, vertex_idx: int) -> Vertex:
        """Look up a vertex by index."""
        return self._vertex_map[vertex_idx]

    def neighbours(self, vertex_idx: int) -> Iterator[tuple[int, Edge]]:
        """Iterate over neighbouring vertex indices and the connecting edges."""
        return iter(self._vertex_map[vertex_idx].all_neighbours)

    def unique_edge(self, a: int, b: int) -> Optional[Edge]:
        """Return the edge connecting exactly ``a`` and ``b`` (or ``None``).

        Raises:
            InvariantViolationError: if more than one edge connects the vertices.
        """
        va, vb = self._vertex_map[a], self._vertex_map[b]
        src, dst = (va, b) if va.degree <= vb.degree else (vb, a)
        matches = [e for w, e in src.all_neighbours if w == dst]
        if len(matches) > 1:
            raise InvariantViolationError(
                f"{len(matches)} edges connect vertices {a} and {b}"
            )
        return matches[0] if matches else None

    def path_observables(self, path: Sequence[int]) -> set[int]:
        """Observables flipped by the chain of edges along a vertex path."""
        flipped: set[int] = set()
        for a, b in zip(path[:-1], path[1:]):
            edge = self.unique_edge(a, b)
            if edge is None:
                raise InvariantViolationError(f"Path {path} uses a missing edge")
            flipped ^= edge.observables
        return flipped

    def chain_observables(self, a: int, b: int) -> set[int]:
        """Observables flipped by a shortest error chain between ``a`` and ``b``."""
        result = distance.dijkstra(self, a, targets=(b,))
        return self.path_observables(distance.dijkstra_path(result.prev, a, b))

    def syndrome(self, detectors: Iterable[int]) -> np.ndarray:
        """Convert fired detector indices into a syndrome bit vector."""
        syndrome = np.zeros(self.n_detectors, dtype=bool)
        syndrome[list(detectors)] = True
        return syndrome

    def __repr__(self) -> str:  # noqa: D105
        return (
            f"{self.__class__.__name__}(n_detectors={self.n_detectors}, "
            f"n_edges={len(self.edges)}, n_observables={self.n_observables})"
        )


def graph_from_circuit(circuit: stim.Circuit) -> DecodingGraph:
    """Build the decoding graph of a circuit.

    This is a shortcut for :meth:`DecodingGraph.from_circuit`.
    """
    return DecodingGraph.from_circuit(circuit)
