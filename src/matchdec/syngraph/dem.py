# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Reading Stim detector error models.

Stim is available from https://github.com/quantumlib/Stim (Apache 2.0 license).

A detector error model (DEM) may contain ``repeat`` blocks and
``shift_detectors`` instructions. :func:`read_dem` resolves both, such that every
detector declaration and every error mechanism it returns refers to globally unique
detector indices and absolute coordinates.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from dataclasses import field as dfield
from typing import Optional, Sequence

import stim  # type: ignore

#: Coordinate which holds the colour of a detector (use ``RED = 1`` in circuits).
COLOR_COORD_IDX = 0
#: Coordinate which marks flag detectors (any value ``> 0`` after rounding).
FLAG_COORD_IDX = 1


class Color(enum.IntEnum):
    """Colour of a detector (relevant for colour codes only)."""

    NONE = 0
    RED = 1
    GREEN = 2
    BLUE = 3


@dataclass(frozen=True, slots=True)
class DetectorDecl:
    """A ``detector`` instruction after resolving shifts.

    This is a dataclass.
    """

    #: Global detector index
    idx: int
    #: Absolute coordinates of the detector
    coords: tuple[float, ...] = ()

    @property
    def color(self) -> Color:
        """Colour read from coordinate :data:`COLOR_COORD_IDX`."""
        if len(self.coords) <= COLOR_COORD_IDX:
            return Color.NONE
        try:
            return Color(round(self.coords[COLOR_COORD_IDX]))
        except ValueError:
            return Color.NONE

    @property
    def is_flag(self) -> bool:
        """Flag bit read from coordinate :data:`FLAG_COORD_IDX`."""
        if len(self.coords) <= FLAG_COORD_IDX:
            return False
        return round(self.coords[FLAG_COORD_IDX]) > 0


@dataclass(frozen=True, slots=True)
class ErrorDecl:
    """One error mechanism (one component of an ``error`` instruction).

    This is a dataclass.
    """

    #: Global indices of flipped detectors
    detectors: tuple[int, ...]
    #: Probability of the mechanism
    probability: float
    #: Indices of flipped logical observables
    observables: frozenset[int] = frozenset()


@dataclass(slots=True)
class DemReadResult:
    """Flattened contents of a detector error model.

    This is a dataclass.
    """

    #: Detector declarations, in the order in which they appear
    detectors: list[DetectorDecl] = dfield(default_factory=list)
    #: Error mechanisms, in the order in which they appear
    errors: list[ErrorDecl] = dfield(default_factory=list)
    #: Total number of detectors (including undeclared ones)
    num_detectors: int = 0
    #: Total number of logical observables
    num_observables: int = 0


@dataclass(slots=True)
class _BlockInfo:
    """Running shifts while walking through (nested) blocks of a DEM."""

    id_shift: int = 0
    coord_shift: list[float] = dfield(default_factory=list)

    def shifted_coords(self, args: Sequence[float]) -> tuple[float, ...]:
        n = max(len(args), len(self.coord_shift))
        shift = self.coord_shift + [0.0] * (n - len(self.coord_shift))
        return tuple(
            s + (args[i] if i < len(args) else 0.0) for i, s in enumerate(shift)
        )


def read_dem(dem: stim.DetectorErrorModel) -> DemReadResult:
    """Flatten a detector error model into declarations.

    Each ``^``-separated component of a decomposed error becomes its own
    :class:`ErrorDecl`, with the probability of the whole instruction.
    """
    result = DemReadResult(
        num_detectors=dem.num_detectors, num_observables=dem.num_observables
    )
    _read_block(dem, result, _BlockInfo())
    return result


def _read_block(
    dem: stim.DetectorErrorModel, result: DemReadResult, info: _BlockInfo
) -> None:
    for inst in dem:
        if isinstance(inst, stim.DemRepeatBlock):
            body = inst.body_copy()
            for _ in range(inst.repeat_count):
                _read_block(body, result, info)
            continue
        match inst.type:
            case "error":
                result.errors.extend(_read_error(inst, info))
            case "detector":
                coords = info.shifted_coords(inst.args_copy())
                for target in inst.targets_copy():
                    result.detectors.append(
                        DetectorDecl(idx=target.val + info.id_shift, coords=coords)
                    )
            case "shift_detectors":
                shift = inst.args_copy()
                n = max(len(shift), len(info.coord_shift))
                info.coord_shift.extend([0.0] * (n - len(info.coord_shift)))
                for i, value in enumerate(shift):
                    info.coord_shift[i] += value
                for target in inst.targets_copy():
                    info.id_shift += target if isinstance(target, int) else target.val
            case _:
                # logical_observable declarations carry no information we need
                pass


def _read_error(inst: stim.DemInstruction, info: _BlockInfo) -> list[ErrorDecl]:
    probability = inst.args_copy()[0]
    errors = []
    detectors: list[int] = []
    observables: set[int] = set()
    for target in inst.targets_copy() + [None]:
        if target is None or target.is_separator():
            errors.append(
                ErrorDecl(
                    detectors=tuple(detectors),
                    probability=probability,
                    observables=frozenset(observables),
                )
            )
            detectors, observables = [], set()
        elif target.is_logical_observable_id():
            # An observable flipped twice is not flipped at all.
            observables ^= {target.val}
        else:
            detectors.append(target.val + info.id_shift)
    return errors


def find_observable_only_errors(
    dem: stim.DetectorErrorModel,
) -> stim.DetectorErrorModel:
    """Collect errors which flip observables but no detectors.

    Such errors are undetectable logical errors: no decoder can ever correct them.

    Returns:
        A detector error model containing only the offending ``error``
        instructions (empty if there are none).
    """
    bad = stim.DetectorErrorModel()
    for inst in dem.flattened():
        if inst.type != "error":
            continue
        targets = inst.targets_copy()
        has_detectors = any(t.is_relative_detector_id() for t in targets)
        has_observables = any(t.is_logical_observable_id() for t in targets)
        if has_observables and not has_detectors:
            bad.append("error", inst.args_copy(), targets)
    return bad


def explain_errors(
    bad: stim.DetectorErrorModel, circuit: Optional[stim.Circuit] = None
) -> str:
    """Produce a human-readable dump of offending error instructions.

    If the circuit is available, Stim is asked to explain where in the circuit
    each error comes from.
    """
    lines = [str(bad)]
    if circuit is not None:
        explained = circuit.explain_detector_error_model_errors(
            dem_filter=bad, reduce_to_one_representative_error=True
        )
        lines.extend(str(e) for e in explained)
    return "\n".join(lines)
