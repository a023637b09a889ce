# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Exceptions raised while building decoding graphs and decoding.

Construction errors (:class:`ConfigurationError`, :class:`MalformedModelError`)
abort a run. :class:`DecoderInternalError` aborts the current trial.
:class:`InvariantViolationError` means a decoding graph got corrupted.

Ambiguous pre-decoder preferences, windows with nothing to commit and similar
situations are normal control flow and never raise.
"""


class DecodingError(Exception):
    """Base class of all errors raised by :mod:`matchdec`."""


class ConfigurationError(DecodingError, ValueError):
    """Invalid construction parameters for a decoder."""


class MalformedModelError(DecodingError, ValueError):
    """The detector error model cannot be turned into a decoding graph."""


class InvariantViolationError(DecodingError, RuntimeError):
    """An internal invariant of a decoding graph does not hold."""


class DecoderInternalError(DecodingError, RuntimeError):
    """Decoding a single syndrome failed."""
