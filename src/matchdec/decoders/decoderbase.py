# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Basic definitions for decoders."""

from __future__ import annotations

import abc
import sys
from typing import Iterable, Sequence, TextIO

import numpy as np

from matchdec import syngraph


class DecodeResult:
    """Prediction of flipped logical observables.

    The prediction is a boolean vector indexed by observable. Results of
    sub-decoders are combined with ``^``, which is the only state passed between
    the layers of a composite decoder.

    .. automethod:: __init__
    """

    #: Flip bit for each logical observable
    flips: np.ndarray

    def __init__(self, n_observables: int, flipped: Iterable[int] = ()):
        """Create a new result.

        Args:
            n_observables: Number of logical observables.
            flipped: Observables which are initially flipped.
        """
        self.flips = np.zeros(n_observables, dtype=bool)
        self.toggle(flipped)

    @classmethod
    def from_array(cls, flips: np.ndarray) -> DecodeResult:
        """Wrap a copy of an existing flip vector."""
        res = cls(len(flips))
        res.flips[:] = flips
        return res

    @property
    def n_observables(self) -> int:
        """Number of logical observables."""
        return len(self.flips)

    def toggle(self, observables: Iterable[int]):
        """Flip the given observables (in place)."""
        for obs in observables:
            self.flips[obs] ^= True

    def apply(self, measured: np.ndarray) -> np.ndarray:
        """Apply the correction to measured observable values."""
        return np.asarray(measured, dtype=bool) ^ self.flips

    def flipped(self) -> list[int]:
        """Indices of flipped observables."""
        return [int(i) for i in np.flatnonzero(self.flips)]

    def __ixor__(self, other: DecodeResult) -> DecodeResult:
        self._check_compatible(other)
        self.flips ^= other.flips
        return self

    def __xor__(self, other: DecodeResult) -> DecodeResult:
        self._check_compatible(other)
        return DecodeResult.from_array(self.flips ^ other.flips)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecodeResult):
            return NotImplemented
        return np.array_equal(self.flips, other.flips)

    def _check_compatible(self, other: DecodeResult):
        if other.n_observables != self.n_observables:
            raise ValueError(
                f"Cannot combine results with {self.n_observables} and "
                f"{other.n_observables} observables"
            )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(flipped={self.flipped()})"


class TraceSink(metaclass=abc.ABCMeta):
    """Receives decode-time trace output (abstract class).

    Decoders write human-readable lines describing their intermediate steps. A
    sink which is not :attr:`enabled` ignores everything, and decoders skip
    formatting trace messages in that case.
    """

    #: Whether messages are recorded at all
    enabled: bool = True

    @abc.abstractmethod
    def write(self, message: str):
        """Record one line of trace output."""

    def nested(self, indent: str = "  ") -> TraceSink:
        """Return a sink for a sub-decoder, which indents its output."""
        if not self.enabled:
            return self
        return IndentedTrace(self, indent)


class NullTrace(TraceSink):
    """Discards all trace output."""

    enabled = False

    def write(self, message: str):
        pass


class StreamTrace(TraceSink):
    """Writes trace output to a text stream (standard error by default).

    .. automethod:: __init__
    """

    def __init__(self, stream: TextIO | None = None):
        """Create a new sink writing to ``stream``."""
        self.stream = sys.stderr if stream is None else stream

    def write(self, message: str):
        print(message, file=self.stream)


class ListTrace(TraceSink):
    """Collects trace output in :attr:`lines`."""

    def __init__(self):
        #: Recorded lines, in order
        self.lines: list[str] = []

    def write(self, message: str):
        self.lines.append(message)


class IndentedTrace(TraceSink):
    """Forwards trace output to a parent sink, adding indentation.

    .. automethod:: __init__
    """

    def __init__(self, parent: TraceSink, indent: str = "  "):
        """Create a new sink which prefixes every line with ``indent``."""
        self.parent = parent
        self.indent = indent
        self.enabled = parent.enabled

    def write(self, message: str):
        self.parent.write(self.indent + message)


#: Shared sink for callers which do not want trace output.
NULL_TRACE: TraceSink = NullTrace()


class DecoderInterface(metaclass=abc.ABCMeta):
    """Base class for all decoders.

    A decoder is built once per decoding graph and is then used for many trials.
    Subclasses must not modify state during :meth:`decode`, which makes decoders
    re-entrant.
    """

    #: Decoding graph the decoder works on
    graph: syngraph.DecodingGraph

    @property
    def input_graph(self) -> syngraph.DecodingGraph:
        """Decoding graph whose detector indices :meth:`decode` accepts.

        This is :attr:`graph`, unless the decoder works on a smaller graph than the
        one its input refers to.
        """
        return self.graph

    @abc.abstractmethod
    def decode(
        self, detectors: Sequence[int], trace: TraceSink = NULL_TRACE
    ) -> DecodeResult:
        """Predict which logical observables were flipped.

        Args:
            detectors: Sorted indices of fired detectors.
            trace: Receives trace output.

        Returns:
            The prediction.
        """

    def decode_syndrome(
        self, syndrome: np.ndarray, trace: TraceSink = NULL_TRACE
    ) -> DecodeResult:
        """Decode a syndrome given as bit vector (one bit per detector)."""
        syndrome = np.asarray(syndrome, dtype=bool)
        if syndrome.shape != (self.graph.n_detectors,):
            raise ValueError(
                f"Expected syndrome of shape ({self.graph.n_detectors},), "
                f"got {syndrome.shape}"
            )
        return self.decode([int(i) for i in np.flatnonzero(syndrome)], trace)

    def _empty_result(self) -> DecodeResult:
        return DecodeResult(self.graph.n_observables)


class MatchingBackend(metaclass=abc.ABCMeta):
    """Minimum-weight perfect matching on a decoding graph (abstract class).

    A backend pairs up fired detectors such that the total weight of the shortest
    paths between partners is minimal. Detectors may also be paired with the
    boundary.
    """

    #: Decoding graph the backend works on
    graph: syngraph.DecodingGraph

    @abc.abstractmethod
    def solve(
        self, detectors: Sequence[int], trace: TraceSink = NULL_TRACE
    ) -> list[tuple[int, int]]:
        """Match fired detectors.

        Args:
            detectors: Sorted indices of fired detectors.
            trace: Receives trace output.

        Returns:
            Matched pairs of vertex indices. Every detector occurs in exactly one
            pair; the partner may be :attr:`.DecodingGraph.boundary_idx`.
        """
