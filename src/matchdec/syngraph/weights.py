# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Computation of edge probabilities and weights for the decoding graph."""

from __future__ import annotations

import warnings
from typing import Optional

import numpy as np

#: Scale applied to log-probabilities before rounding to integer weights.
WEIGHT_SCALE: int = 100


def merge_probabilities(p_1: float, p_2: float) -> float:
    r"""Combine two independent error mechanisms with the same effect.

    Suppose that there is an effective probability :math:`p_1` for flipping a given
    pair of detectors and we add a new, independent source flipping the same pair
    with probability :math:`p_2`. The pair is flipped if exactly one of the sources
    fires:

    :math:`p_\text{new} = p_1 (1 - p_2) + (1 - p_1) p_2`

    The formula is symmetric, so the order in which duplicate mechanisms are merged
    does not matter.
    """
    return p_1 * (1 - p_2) + (1 - p_1) * p_2


def quantize_weight(probability: float) -> int:
    r"""Convert an edge probability to an integer weight.

    Weights are computed as :math:`w = \operatorname{round}(-100 \ln p)`. Unlike the
    log-likelihood ratio :math:`-\ln\frac{p}{1-p}`, this weight is non-negative for
    every :math:`p \in (0, 1]`, which keeps Dijkstra's algorithm applicable.

    Raises:
        ValueError: if ``probability`` is not in :math:`(0, 1]`.
    """
    if not 0 < probability <= 1:
        raise ValueError(f"Edge probability {probability!r} is not in (0, 1]")
    # Half-way cases round away from zero (all values here are non-negative).
    return int(np.floor(-np.log(probability) * WEIGHT_SCALE + 0.5))


def quantize_weights(probabilities: np.ndarray) -> np.ndarray:
    """Vectorized version of :func:`quantize_weight`."""
    probabilities = np.asarray(probabilities, dtype=float)
    if ((probabilities <= 0) | (probabilities > 1)).any():
        raise ValueError("Edge probabilities must be in (0, 1]")
    return np.floor(-np.log(probabilities) * WEIGHT_SCALE + 0.5).astype(np.int64)


def check_weights_sane(weights: Optional[np.ndarray], stacklevel: int = 2) -> bool:
    r"""Check weights for possible problems.

    This function is used by matching backends to check whether weights look
    generally reasonable before handing them to an external solver.

    Raise errors for negative weights. Raise warnings for zero weights (an edge with
    probability one), which make some matchings degenerate.

    Args:
        weights: The weights
        stacklevel: Stack level for any warnings raised
    """
    sane = True
    if weights is None or len(weights) == 0:
        return sane
    weights = np.asarray(weights)
    if (weights < 0).any():
        raise ValueError("Negative edge weights are not supported")
    if (weights == 0).any():
        sane = False
        warnings.warn(
            "Some edge weights are zero. Matchings through these edges are not "
            "unique.",
            stacklevel=stacklevel,
        )
    return sane
