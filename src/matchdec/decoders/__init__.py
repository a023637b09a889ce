# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
r"""Matching-based decoders.

All decoders in ``matchdec`` have the same interface
(:class:`.decoderbase.DecoderInterface`): they are constructed once for a
:class:`~matchdec.syngraph.DecodingGraph` and then map the sorted indices of fired
detectors to a :class:`.decoderbase.DecodeResult`, the prediction of flipped
logical observables::

    graph = syngraph.DecodingGraph.from_circuit(circuit)
    decoder = decoders.ExactDecoder(graph)
    result = decoder.decode([3, 8])

Available decoders
------------------

* :class:`ExactDecoder`: exact minimum-weight perfect matching over the whole
  graph (see :mod:`.exact`).
* :class:`SlidingWindowDecoder`: decodes long streams of syndrome rounds window by
  window (see :mod:`.sliding`).
* :class:`EprDecoder`: two-level decoder for a merge between a fast and a slow
  hardware substrate (see :mod:`.epr`).
* :class:`FpdDecoder` and :class:`PromatchDecoder`: pre-decoders which resolve
  easy pairs of fired detectors and wrap another decoder (see :mod:`.fpd` and
  :mod:`.promatch`).

Decoders which wrap other decoders own them: a wrapped decoder is never shared.

Trace output
------------

Every call to ``decode`` accepts a :class:`.decoderbase.TraceSink`. By default,
:data:`.decoderbase.NULL_TRACE` discards everything. Pass a
:class:`.decoderbase.ListTrace` or :class:`.decoderbase.StreamTrace` to follow
what a decoder does; output of wrapped decoders is indented.
"""

from matchdec.decoders.decoderbase import (
    NULL_TRACE,
    DecodeResult,
    DecoderInterface,
    IndentedTrace,
    ListTrace,
    MatchingBackend,
    NullTrace,
    StreamTrace,
    TraceSink,
)
from matchdec.decoders.epr import EprDecoder
from matchdec.decoders.exact import ExactDecoder
from matchdec.decoders.fpd import FpdConfig, FpdDecoder
from matchdec.decoders.matching import (
    PerfectMatchingSolver,
    PyMatchingBackend,
    RustworkxBlossomSolver,
)
from matchdec.decoders.promatch import PromatchDecoder
from matchdec.decoders.sliding import RoundSchedule, SlidingWindowDecoder, WindowBounds

__all__ = [
    "NULL_TRACE",
    "DecodeResult",
    "DecoderInterface",
    "EprDecoder",
    "ExactDecoder",
    "FpdConfig",
    "FpdDecoder",
    "IndentedTrace",
    "ListTrace",
    "MatchingBackend",
    "NullTrace",
    "PerfectMatchingSolver",
    "PromatchDecoder",
    "PyMatchingBackend",
    "RoundSchedule",
    "RustworkxBlossomSolver",
    "SlidingWindowDecoder",
    "StreamTrace",
    "TraceSink",
    "WindowBounds",
]
