# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
r"""Fast-path pre-decoder (FPD) based on a cache of short error chains.

At low physical error rates, most fired detectors come in close pairs which are
obviously matched with each other. The :class:`FpdDecoder` resolves such pairs
from a precomputed cache and passes only the remaining detectors to a wrapped
decoder.

Chain cache
-----------

For every detector :math:`v`, the cache contains every detector reachable from
:math:`v` with at most ``cache_chain_limit`` edges (chains through the boundary
are not considered). For each such detector it stores the cheapest chain with
that hop limit: its number of edges, its total weight and the observables it flips
(see :class:`ChainCacheEntry`).

Consensual pairing
------------------

The *preference* of a fired detector is the fired detector which it reaches by the
cheapest cached chain. If several fired detectors tie for the cheapest chain, the
detector has no preference. Two detectors which prefer each other are matched by
their cached chain. Everything else is left to the wrapped decoder.

Pre-decoding only removes pairs which the wrapped decoder would almost certainly
match in the same way. It affects the speed of decoding, not the way decoding
works; with ``cache_chain_limit = 0``, the result is that of the wrapped decoder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from matchdec import syngraph
from matchdec.decoders import decoderbase
from matchdec.exceptions import ConfigurationError


@dataclass(slots=True, kw_only=True)
class FpdConfig:
    """Configuration of :class:`FpdDecoder`.

    This is a dataclass.
    """

    #: Maximal number of edges of cached chains (``0`` disables pre-decoding)
    cache_chain_limit: int = 3
    #: Skip pre-decoding of a syndrome if any fired detector has no preference
    do_not_predecode_if_any_without_pref: bool = True

    def __post_init__(self):
        """Validate parameters."""
        if self.cache_chain_limit < 0:
            raise ConfigurationError("cache_chain_limit must not be negative")


@dataclass(frozen=True, slots=True)
class ChainCacheEntry:
    """Cheapest chain between two detectors with a bounded number of edges.

    This is a dataclass.
    """

    #: Number of edges in the chain
    hops: int
    #: Total weight of the chain
    weight: int
    #: Observables flipped by the chain
    observables: frozenset[int]


def build_chain_cache(
    graph: syngraph.DecodingGraph, chain_limit: int
) -> list[dict[int, ChainCacheEntry]]:
    """Compute the cheapest chains with at most ``chain_limit`` edges.

    Returns:
        For each detector, a map from reachable detectors to cache entries. The
        detector itself is not included.
    """
    boundary = graph.boundary_idx
    cache = []
    for src in range(graph.n_detectors):
        best = {src: ChainCacheEntry(0, 0, frozenset())}
        frontier = {src}
        for hops in range(1, chain_limit + 1):
            # Relax from a snapshot, such that every chain gains exactly one edge.
            layer = {u: best[u] for u in frontier}
            frontier = set()
            for u, entry in layer.items():
                for v, edge in graph.neighbours(u):
                    if v == boundary:
                        continue
                    weight = entry.weight + edge.weight
                    current = best.get(v)
                    if current is None or weight < current.weight:
                        best[v] = ChainCacheEntry(
                            hops, weight, entry.observables ^ edge.observables
                        )
                        frontier.add(v)
            if not frontier:
                break
        del best[src]
        cache.append(best)
    return cache


class FpdDecoder(decoderbase.DecoderInterface):
    """Resolve mutually preferred pairs from a chain cache, delegate the rest.

    For an overview, see :mod:`matchdec.decoders.fpd`.

    .. automethod:: __init__
    """

    #: Decoder for all detectors which are not pre-decoded
    wrapped: decoderbase.DecoderInterface
    #: Configuration
    config: FpdConfig
    #: Chain cache (one map per detector)
    cache: list[dict[int, ChainCacheEntry]]

    def __init__(
        self,
        wrapped: decoderbase.DecoderInterface,
        config: Optional[FpdConfig] = None,
    ):
        """Create a new pre-decoder and compute the chain cache.

        Args:
            wrapped: The decoder which handles the remaining detectors. The chain
                cache is computed on its
                :attr:`~.decoderbase.DecoderInterface.input_graph`.
            config: Configuration. Defaults to :class:`FpdConfig` defaults.

        Raises:
            ConfigurationError: if the input graph of ``wrapped`` is unknown.
        """
        self.wrapped = wrapped
        self.graph = wrapped.input_graph
        self.config = FpdConfig() if config is None else config
        self.cache = build_chain_cache(self.graph, self.config.cache_chain_limit)

    def preferences(self, detectors: Sequence[int]) -> dict[int, Optional[int]]:
        """Compute the preferred partner of each fired detector.

        Detectors without a cached fired detector or with a tie have preference
        ``None``.
        """
        fired = set(detectors)
        prefs: dict[int, Optional[int]] = {}
        for det in detectors:
            chains = self.cache[det]
            if len(fired) <= len(chains):
                candidates = [
                    (chains[other].weight, other)
                    for other in fired
                    if other != det and other in chains
                ]
            else:
                candidates = [
                    (entry.weight, other)
                    for other, entry in chains.items()
                    if other in fired
                ]
            candidates.sort()
            if not candidates or (
                len(candidates) > 1 and candidates[0][0] == candidates[1][0]
            ):
                prefs[det] = None
            else:
                prefs[det] = candidates[0][1]
        return prefs

    def decode(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> decoderbase.DecodeResult:
        """Pre-decode, then delegate the remaining detectors.

        See :meth:`.decoderbase.DecoderInterface.decode`.
        """
        prefs = self.preferences(detectors)
        if self.config.do_not_predecode_if_any_without_pref and any(
            p is None for p in prefs.values()
        ):
            if trace.enabled:
                trace.write("fpd: skipped (detector without preference)")
            return self.wrapped.decode(detectors, trace.nested())

        result = self._empty_result()
        resolved = set()
        for det, pref in prefs.items():
            if pref is None or det > pref or prefs.get(pref) != det:
                continue
            result.toggle(self.cache[det][pref].observables)
            resolved.update((det, pref))
            if trace.enabled:
                trace.write(f"fpd: pair {det}-{pref}")
        remaining = [d for d in detectors if d not in resolved]
        if remaining:
            result ^= self.wrapped.decode(remaining, trace.nested())
        return result
