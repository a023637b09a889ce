# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
r"""Sliding-window decoder for long streams of syndrome rounds.

Decoding all rounds of a long memory experiment at once requires the full syndrome.
The sliding-window decoder instead works on a bounded number of rounds at a time
and finalizes (*commits*) the oldest part of each window before moving on.

Windows and commit regions
--------------------------

Detectors are numbered round by round, with :math:`n` detectors per round. The
step at round :math:`r` looks at

* the *window* :math:`[rn, (r + W)n)` and
* the *commit region* :math:`[rn, (r + C)n)`,

where :math:`W` is the window size and :math:`C \le W` the commit size (both in
rounds). Fired detectors in the window are matched on a *local* decoding graph.
A matched pair is committed if at least one of its detectors lies in the commit
region: the observables along its shortest path are flipped and both detectors
are removed from the stream. Pairs beyond the commit region are discarded and
re-examined in a later window. The next step starts at round :math:`r + C`.

On the final step (:math:`r + C` reaches the total number of rounds), the window
and the commit region extend to the end of the stream, such that trailing
detectors (e.g. from the final data qubit measurement) are committed as well.

The local graph
---------------

The local graph covers :math:`W + 1` rounds. The first window starts at local
round zero, because the first round of the stream has no predecessor. Every later
window starts at local round one, such that local round zero can absorb error
chains reaching back into already committed rounds. The translation between
global and local detector indices is handled by :class:`WindowBounds`.

Pre-decoders (:mod:`~matchdec.decoders.fpd`, :mod:`~matchdec.decoders.promatch`)
see global indices. They work on the decoding graph of the whole stream, which is
passed to :class:`SlidingWindowDecoder` as ``stream_graph``.
"""

from __future__ import annotations

import bisect
import sys
from dataclasses import dataclass
from typing import AbstractSet, Iterator, Optional, Sequence

import numpy as np

from matchdec import syngraph
from matchdec.decoders import decoderbase
from matchdec.decoders.matching import PyMatchingBackend
from matchdec.exceptions import ConfigurationError, DecoderInternalError

#: Upper index bound used for the unbounded window of the final step.
UNBOUNDED: int = sys.maxsize


@dataclass(frozen=True, slots=True, kw_only=True)
class WindowBounds:
    """Detector index bounds of one step of the sliding-window decoder.

    All bounds are global detector indices. Upper bounds are exclusive.

    This is a dataclass.
    """

    #: First round of the window
    round_idx: int
    #: First detector in the window
    min_id: int
    #: End of the window
    max_id: int
    #: End of the commit region
    commit_max: int
    #: Global index of local detector zero
    local_offset: int
    #: Whether this is the last step
    is_final: bool = False

    def in_window(self, detector: int) -> bool:
        """Whether ``detector`` lies in the window."""
        return self.min_id <= detector < self.max_id

    def in_commit_region(self, detector: int) -> bool:
        """Whether ``detector`` lies in the commit region."""
        return self.min_id <= detector < self.commit_max

    def to_local(self, detector: int) -> int:
        """Convert a global detector index into a local one."""
        return detector - self.local_offset

    def to_global(self, detector: int) -> int:
        """Convert a local detector index into a global one."""
        return detector + self.local_offset


@dataclass(frozen=True, slots=True, kw_only=True)
class RoundSchedule:
    """Sequence of windows of a sliding-window decoder.

    This is a dataclass.

    Raises:
        ConfigurationError: if the parameters are inconsistent (see
            :meth:`__post_init__`).
    """

    #: Number of detectors in each round
    detectors_per_round: int
    #: Number of rounds committed in each step
    commit_size: int
    #: Number of rounds in each window
    window_size: int
    #: Number of rounds in the stream
    total_rounds: int

    def __post_init__(self):
        """Validate parameters."""
        if self.detectors_per_round <= 0:
            raise ConfigurationError("detectors_per_round must be positive")
        if self.commit_size <= 0:
            raise ConfigurationError("commit_size must be positive")
        if self.window_size < self.commit_size:
            raise ConfigurationError(
                f"window_size ({self.window_size}) must not be smaller than "
                f"commit_size ({self.commit_size})"
            )
        if (
            self.total_rounds % self.commit_size != 0
            or self.total_rounds % self.window_size != 0
        ):
            raise ConfigurationError(
                f"total_rounds ({self.total_rounds}) must be a multiple of "
                f"commit_size ({self.commit_size}) and window_size "
                f"({self.window_size})"
            )

    @property
    def local_detectors_required(self) -> int:
        """Minimal number of detectors of the local decoding graph."""
        return (self.window_size + 1) * self.detectors_per_round

    def bounds(self, round_idx: int) -> WindowBounds:
        """Bounds of the step starting at round ``round_idx``."""
        n = self.detectors_per_round
        is_final = round_idx + self.commit_size >= self.total_rounds
        if is_final:
            max_id = commit_max = UNBOUNDED
        else:
            max_id = (round_idx + self.window_size) * n
            commit_max = (round_idx + self.commit_size) * n
        return WindowBounds(
            round_idx=round_idx,
            min_id=round_idx * n,
            max_id=max_id,
            commit_max=commit_max,
            # The first round has no predecessor in the local graph.
            local_offset=0 if round_idx == 0 else (round_idx - 1) * n,
            is_final=is_final,
        )

    def steps(self) -> Iterator[WindowBounds]:
        """Iterate over the bounds of all steps."""
        for round_idx in range(0, self.total_rounds, self.commit_size):
            yield self.bounds(round_idx)


class SlidingWindowDecoder(decoderbase.DecoderInterface):
    """Decode a stream of syndrome rounds window by window.

    For an overview, see :mod:`matchdec.decoders.sliding`.

    .. automethod:: __init__
    """

    #: Round structure of the stream
    schedule: RoundSchedule
    #: Matching backend on the local decoding graph
    backend: decoderbase.MatchingBackend
    #: Decoding graph of the whole stream (optional)
    stream_graph: Optional[syngraph.DecodingGraph]

    def __init__(
        self,
        local_graph: syngraph.DecodingGraph,
        *,
        commit_size: int,
        window_size: int,
        detectors_per_round: int,
        total_rounds: int,
        backend: Optional[decoderbase.MatchingBackend] = None,
        stream_graph: Optional[syngraph.DecodingGraph] = None,
    ):
        """Create a new decoder.

        Args:
            local_graph: Decoding graph covering ``window_size + 1`` rounds.
            commit_size: Number of rounds committed per step.
            window_size: Number of rounds per window (usually
                ``2 * commit_size``).
            detectors_per_round: Number of detectors in each round.
            total_rounds: Number of rounds in the stream.
            backend: Matching backend on ``local_graph``. Defaults to
                :class:`~.matching.PyMatchingBackend`.
            stream_graph: Decoding graph of the whole stream. The decoder itself
                does not use it, but pre-decoders wrapping the decoder need it
                (see :attr:`input_graph`).

        Raises:
            ConfigurationError: if the parameters are inconsistent, the local
                graph is too small or the graphs flip different observables.
        """
        self.graph = local_graph
        self.schedule = RoundSchedule(
            detectors_per_round=detectors_per_round,
            commit_size=commit_size,
            window_size=window_size,
            total_rounds=total_rounds,
        )
        if local_graph.n_detectors < self.schedule.local_detectors_required:
            raise ConfigurationError(
                f"The local graph has {local_graph.n_detectors} detectors, but "
                f"{self.schedule.local_detectors_required} are required for "
                f"windows of {window_size} rounds"
            )
        if backend is None:
            backend = PyMatchingBackend(local_graph)
        elif backend.graph is not local_graph:
            raise ConfigurationError("The backend must use the local graph")
        self.backend = backend
        if (
            stream_graph is not None
            and stream_graph.n_observables != local_graph.n_observables
        ):
            raise ConfigurationError(
                f"The stream graph has {stream_graph.n_observables} observables, "
                f"the local graph {local_graph.n_observables}"
            )
        self.stream_graph = stream_graph

    @property
    def input_graph(self) -> syngraph.DecodingGraph:
        """Decoding graph of the whole stream.

        Detector indices passed to :meth:`decode` refer to this graph, not to
        :attr:`graph`.

        Raises:
            ConfigurationError: if the decoder was created without
                ``stream_graph``.
        """
        if self.stream_graph is None:
            raise ConfigurationError(
                "The decoding graph of the whole stream is unknown, "
                "pass stream_graph to SlidingWindowDecoder"
            )
        return self.stream_graph

    def decode(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
    ) -> decoderbase.DecodeResult:
        """Decode a stream of fired detectors.

        See :meth:`.decoderbase.DecoderInterface.decode`.
        """
        result, _ = self.decode_stream(detectors, trace)
        return result

    def decode_syndrome(
        self, syndrome: np.ndarray, trace: decoderbase.TraceSink = decoderbase.NULL_TRACE
    ) -> decoderbase.DecodeResult:
        """Decode a stream given as bit vector (one bit per global detector)."""
        syndrome = np.asarray(syndrome, dtype=bool)
        if syndrome.ndim != 1:
            raise ValueError(f"Expected 1-D syndrome, got shape {syndrome.shape}")
        return self.decode([int(i) for i in np.flatnonzero(syndrome)], trace)

    def decode_stream(
        self,
        detectors: Sequence[int],
        trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
        do_not_commit: AbstractSet[int] = frozenset(),
    ) -> tuple[decoderbase.DecodeResult, list[int]]:
        """Decode a stream and report detectors which were not committed.

        Args:
            detectors: Sorted global indices of fired detectors.
            trace: Receives trace output.
            do_not_commit: Global indices of detectors which must not be committed
                by matching them to the boundary. Such detectors remain live and
                are returned for decoding elsewhere.

        Returns:
            The partial decoding result and the sorted list of detectors which
            are still live after the last step.
        """
        result = self._empty_result()
        live = sorted(set(detectors))
        boundary = self.graph.boundary_idx
        for bounds in self.schedule.steps():
            if not live:
                break
            start = bisect.bisect_left(live, bounds.min_id)
            stop = bisect.bisect_left(live, bounds.max_id)
            window = live[start:stop]
            if not window or not bounds.in_commit_region(window[0]):
                if trace.enabled:
                    trace.write(f"round {bounds.round_idx}: nothing to commit")
                continue
            local = [bounds.to_local(d) for d in window]
            if local[-1] >= self.graph.n_detectors:
                raise DecoderInternalError(
                    f"Detector {window[-1]} is outside of the local graph in the "
                    f"window starting at round {bounds.round_idx}"
                )
            if trace.enabled:
                trace.write(f"round {bounds.round_idx}: window {window}")
            committed: set[int] = set()
            for a, b in self.backend.solve(local, trace.nested()):
                ends = [None if v == boundary else bounds.to_global(v) for v in (a, b)]
                if not any(
                    g is not None and bounds.in_commit_region(g) for g in ends
                ):
                    continue
                if None in ends and any(g in do_not_commit for g in ends):
                    if trace.enabled:
                        trace.write(f"hold {ends[0] if ends[1] is None else ends[1]}")
                    continue
                result.toggle(self.graph.chain_observables(a, b))
                committed.update(g for g in ends if g is not None)
                if trace.enabled:
                    trace.write(
                        "commit "
                        + " ".join("B" if g is None else str(g) for g in ends)
                    )
            live = [d for d in live if d not in committed]
        return result, live
