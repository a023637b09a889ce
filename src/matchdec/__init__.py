# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Matching-based decoders for surface-code memory and surgery experiments.

``matchdec`` turns the fired detectors of a syndrome-extraction circuit into a
prediction of which logical observables were flipped.

The decoding graph, built from a Stim detector error model, lives in
:mod:`matchdec.syngraph`; it also provides the shortest-path engine in
:mod:`matchdec.syngraph.distance`. The decoders themselves are in
:mod:`matchdec.decoders`: an exact global decoder, a sliding-window streaming
decoder, a hierarchical decoder for two hardware substrates joined by EPR pairs,
and two pre-decoders (FPD and Promatch) which wrap any of the others.
Declarative configuration is handled by :mod:`matchdec.frontend` and
:mod:`matchdec.evaluation` benchmarks a decoder against sampled ground truth.
"""

import sys

import numpy as np

__version__ = "0.0.1a1"

#: Random number generator (specifically :func:`numpy.random.Generator.default_rng`)
#:
#: Used to seed Stim's samplers when no seed is given explicitly. Replace this module
#: variable **before** calling any other function in the package to make benchmarks
#: deterministic.
rng = np.random.default_rng()

# Avoid surprises
assert sys.version_info >= (3, 10), "Please upgrade Python to at least 3.10"
