# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Shortest paths on decoding graphs.

Both functions assume that vertex indices are contiguous and start from 0, which
holds for every :class:`~matchdec.syngraph.DecodingGraph`.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

import numpy as np

if TYPE_CHECKING:
    from matchdec.syngraph import DecodingGraph, Edge

#: Distance of vertices which were not reached.
UNREACHED: int = int(np.iinfo(np.int64).max)
#: Predecessor of the source and of vertices which were not reached.
NO_PREV: int = -1


@dataclass(slots=True)
class DijkstraResult:
    """Distances and predecessors from a single source.

    This is a dataclass.
    """

    #: Source vertex of the search
    source: int
    #: Distance from :attr:`source` for each vertex (:data:`UNREACHED` if unknown)
    dist: np.ndarray
    #: Predecessor on a shortest path for each vertex (:data:`NO_PREV` if unknown)
    prev: np.ndarray

    def reached(self, vertex: int) -> bool:
        """Whether a shortest path to ``vertex`` was found."""
        return bool(self.dist[vertex] != UNREACHED)


def _edge_weight(edge: Edge) -> int:
    return edge.weight


def dijkstra(
    graph: DecodingGraph,
    source: int,
    weight_fn: Optional[Callable[[Edge], int]] = None,
    targets: Optional[Iterable[int]] = None,
) -> DijkstraResult:
    """Compute shortest paths from ``source``.

    Args:
        graph: The decoding graph.
        source: Index of the source vertex.
        weight_fn: Maps an edge to its (non-negative) weight. Defaults to the
            quantized edge weight.
        targets: If given, the search stops as soon as every target has been
            finalized instead of when the queue runs empty. Distances to vertices
            outside ``targets`` are then only upper bounds (or :data:`UNREACHED`).

    Raises:
        ValueError: if an edge has negative weight.
    """
    if weight_fn is None:
        weight_fn = _edge_weight
    n = graph.n_vertices
    dist = np.full(n, UNREACHED, dtype=np.int64)
    prev = np.full(n, NO_PREV, dtype=np.int64)
    done = np.zeros(n, dtype=bool)
    remaining = None if targets is None else set(targets) - {source}

    dist[source] = 0
    queue: list[tuple[int, int]] = [(0, source)]
    while queue:
        d, v = heapq.heappop(queue)
        if done[v]:
            continue
        done[v] = True
        if remaining is not None:
            remaining.discard(v)
            if not remaining:
                break
        for w, edge in graph.neighbours(v):
            if done[w]:
                continue
            weight = weight_fn(edge)
            if weight < 0:
                raise ValueError("Dijkstra's algorithm requires non-negative weights")
            if d + weight < dist[w]:
                dist[w] = d + weight
                prev[w] = v
                heapq.heappush(queue, (d + weight, w))
    return DijkstraResult(source=source, dist=dist, prev=prev)


def dijkstra_path(prev: np.ndarray, src: int, dst: int) -> list[int]:
    """Reconstruct the vertex sequence from ``src`` to ``dst``.

    Args:
        prev: Predecessor array from a search started at ``src``
            (:attr:`DijkstraResult.prev`).
        src: Source of the search.
        dst: Destination.

    Returns:
        The list of vertices ``[src, ..., dst]``.

    Raises:
        ValueError: if ``dst`` was not reached by the search.
    """
    path = [dst]
    v = dst
    while v != src:
        v = int(prev[v])
        if v == NO_PREV:
            raise ValueError(f"No path from {src} to {dst} was found")
        path.append(v)
    path.reverse()
    return path
