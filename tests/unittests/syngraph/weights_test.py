# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit-tests for :mod:`matchdec.syngraph.weights`."""
import numpy as np
import pytest as pt

from matchdec.syngraph.weights import (
    check_weights_sane,
    merge_probabilities,
    quantize_weight,
    quantize_weights,
)


@pt.mark.parametrize(
    "probability, weight",
    [(1.0, 0), (0.5, 69), (0.1, 230), (0.02, 391), (0.01, 461), (0.001, 691)],
)
def test_quantize_weight(probability: float, weight: int):
    assert quantize_weight(probability) == weight


@pt.mark.parametrize("probability", [0.0, -0.5, 1.01])
def test_quantize_weight_invalid(probability: float):
    with pt.raises(ValueError, match="not in"):
        quantize_weight(probability)


def test_quantize_weights_matches_scalar_version():
    probabilities = np.array([1.0, 0.5, 0.1, 0.02, 0.01, 1e-4, 0.37])
    expected = [quantize_weight(p) for p in probabilities]
    np.testing.assert_array_equal(quantize_weights(probabilities), expected)
    with pt.raises(ValueError):
        quantize_weights(np.array([0.1, 0.0]))


@pt.mark.parametrize("p_1, p_2", [(0.1, 0.2), (0.0, 0.3), (0.5, 0.5), (1.0, 0.25)])
def test_merge_probabilities(p_1: float, p_2: float):
    merged = merge_probabilities(p_1, p_2)
    assert merged == merge_probabilities(p_2, p_1)
    assert merged == pt.approx(p_1 + p_2 - 2 * p_1 * p_2)


def test_check_weights_sane():
    assert check_weights_sane(None)
    assert check_weights_sane(np.array([1, 2, 3]))
    with pt.warns(UserWarning, match="zero"):
        assert not check_weights_sane(np.array([0, 2]))
    with pt.raises(ValueError, match="Negative"):
        check_weights_sane(np.array([-1, 2]))
