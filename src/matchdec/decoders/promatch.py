# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Greedy subgraph pre-decoder (Promatch).

The pre-decoder looks at the subgraph of the decoding graph induced by the fired
detectors: two fired detectors are adjacent if a single edge connects them. A fired
detector with exactly one fired neighbour can only be explained locally by the
edge to that neighbour. Such pairs are removed greedily, as long as the removal
does not leave a third fired detector without any fired neighbour.

The remaining detectors are passed to a wrapped decoder.
"""

from __future__ import annotations

from typing import Sequence

from matchdec.decoders import decoderbase


class PromatchDecoder(decoderbase.DecoderInterface):
    """Remove isolated pairs of adjacent fired detectors, delegate the rest.

    For an overview, see :mod:`matchdec.decoders.promatch`.

    .. automethod:: __init__
    """

    #: Decoder for all detectors which are not pre-decoded
    wrapped: decoderbase.DecoderInterface
    #: Whether pre-decoding is enabled at all
    enabled: bool

    def __init__(self, wrapped: decoderbase.DecoderInterface, enabled: bool = True):
        """Create a new pre-decoder.

        Args:
            wrapped: The decoder which handles the remaining detectors. Fired
                detectors are looked up in its
                :attr:`~.decoderbase.DecoderInterface.input_graph`.
            enabled: If ``False``, all detectors are passed to ``wrapped``.

        Raises:
            ConfigurationError: if the input graph of ``wrapped`` is unknown.
        """
        self.wrapped = wrapped
        self.graph = wrapped.input_graph
        self.enabled = enabled

    def _induced_subgraph(self, detectors: Sequence[int]) -> dict[int, set[int]]:
        fired = set(detectors)
        return {
            det: {v for v, _ in self.graph.neighbours(det) if v in fired and v != det}
            for det in detectors
        }

    def reduce(self, detectors: Sequence[int]) -> list[tuple[int, int]]:
        """Find the pairs which are removed by pre-decoding.

        Returns:
            Removed pairs, in the order of removal.
        """
        adjacency = self._induced_subgraph(detectors)
        removed = []
        progress = True
        while progress:
            progress = False
            for u in sorted(adjacency):
                if u not in adjacency or len(adjacency[u]) != 1:
                    continue
                (v,) = adjacency[u]
                # Third vertices which would lose their last fired neighbour
                if any(
                    len(adjacency[w] - {u, v}) == 0
                    for w in adjacency[v]
                    if w != u
                ):
                    continue
                for w in adjacency.pop(v):
                    if w != u:
                        adjacency[w].discard(v)
                del adjacency[u]
                removed.append((u, v))
                progress = True
        return removed

    def decode(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> decoderbase.DecodeResult:
        """Pre-decode, then delegate the remaining detectors.

        See :meth:`.decoderbase.DecoderInterface.decode`.
        """
        if not self.enabled:
            return self.wrapped.decode(detectors, trace.nested())
        result = self._empty_result()
        resolved = set()
        for u, v in self.reduce(detectors):
            edge = self.graph.unique_edge(u, v)
            assert edge is not None
            result.toggle(edge.observables)
            resolved.update((u, v))
            if trace.enabled:
                trace.write(f"promatch: pair {u}-{v}")
        remaining = [d for d in detectors if d not in resolved]
        if remaining:
            result ^= self.wrapped.decode(remaining, trace.nested())
        return result
