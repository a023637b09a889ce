# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Benchmark decoders against sampled ground truth.

Detector and observable flips are sampled in batches with Stim's detector sampler.
Every trial is decoded and the prediction is compared with the sampled observable
flips. A mismatch is a logical error.

Example:
    .. code::

        import stim
        from matchdec import decoders, evaluation, syngraph

        circuit = stim.Circuit.generated(
            "repetition_code:memory",
            rounds=4,
            distance=5,
            after_clifford_depolarization=0.01,
        )
        stats = evaluation.eval_decoder(
            circuit, decoders.ExactDecoder, 10_000, evaluation.EvalConfig(seed=1)
        )
        print(stats.report())
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from dataclasses import field as dfield
from typing import Callable, Optional

import numpy as np
import stim  # type: ignore
from tqdm import tqdm

import matchdec
from matchdec import syngraph
from matchdec.decoders import decoderbase
from matchdec.exceptions import ConfigurationError

#: Number of buckets of the per-Hamming-weight histograms (larger weights are
#: counted in the last bucket).
HW_BUCKETS: int = 128


def _hw_histogram() -> np.ndarray:
    return np.zeros(HW_BUCKETS, dtype=np.int64)


def _ratio(a, b) -> float:
    return float(a) / float(b) if b else float("nan")


@dataclass(slots=True, kw_only=True)
class DecoderStats:
    """Statistics accumulated over many decoded trials.

    Statistics of independent runs can be combined with ``+=``.

    This is a dataclass.
    """

    #: Number of trials with a wrong prediction
    errors: int = 0
    #: Number of trials
    trials: int = 0
    #: Number of trials without any fired detector
    trivial_trials: int = 0
    #: Total decoding time (microseconds)
    total_time_us: int = 0
    #: Number of trials where a reference decoder disagreed
    mismatches: int = 0
    #: Decoding time, by number of fired detectors
    time_us_by_hamming_weight: np.ndarray = dfield(default_factory=_hw_histogram)
    #: Number of trials, by number of fired detectors
    trials_by_hamming_weight: np.ndarray = dfield(default_factory=_hw_histogram)

    def record(self, hamming_weight: int, time_us: int, is_error: bool):
        """Add a single trial."""
        bucket = min(hamming_weight, HW_BUCKETS - 1)
        self.trials += 1
        self.errors += int(is_error)
        self.trivial_trials += int(hamming_weight == 0)
        self.total_time_us += time_us
        self.time_us_by_hamming_weight[bucket] += time_us
        self.trials_by_hamming_weight[bucket] += 1

    def __iadd__(self, other: DecoderStats) -> DecoderStats:
        self.errors += other.errors
        self.trials += other.trials
        self.trivial_trials += other.trivial_trials
        self.total_time_us += other.total_time_us
        self.mismatches += other.mismatches
        self.time_us_by_hamming_weight += other.time_us_by_hamming_weight
        self.trials_by_hamming_weight += other.trials_by_hamming_weight
        return self

    @property
    def logical_error_rate(self) -> float:
        """Fraction of trials with a wrong prediction."""
        return _ratio(self.errors, self.trials)

    @property
    def mean_time_us(self) -> float:
        """Mean decoding time per trial."""
        return _ratio(self.total_time_us, self.trials)

    @property
    def mean_time_us_nontrivial(self) -> float:
        """Mean decoding time per trial with at least one fired detector."""
        return _ratio(self.total_time_us, self.trials - self.trivial_trials)

    def mean_time_by_hamming_weight(self) -> np.ndarray:
        """Mean decoding time for each Hamming weight (NaN if there were no trials)."""
        mean = np.full(HW_BUCKETS, np.nan)
        np.divide(
            self.time_us_by_hamming_weight,
            self.trials_by_hamming_weight,
            out=mean,
            where=self.trials_by_hamming_weight > 0,
        )
        return mean

    def report(self) -> str:
        """Summary in a fixed-width, human-readable format."""
        rows: list[tuple[str, float | int]] = [
            ("LOGICAL_ERROR_RATE", self.logical_error_rate),
            ("MEAN_TIME_US", self.mean_time_us),
            ("MEAN_TIME_US_NONTRIVIAL", self.mean_time_us_nontrivial),
            ("ERRORS", self.errors),
            ("TRIALS", self.trials),
            ("TRIVIAL_TRIALS", self.trivial_trials),
        ]
        if self.mismatches:
            rows.append(("REFERENCE_MISMATCHES", self.mismatches))
        lines = []
        for name, value in rows:
            text = f"{value:.8f}" if isinstance(value, float) else str(value)
            lines.append(f"{name:<64}{text:>12}")
        return "\n".join(lines)


@dataclass(slots=True, kw_only=True)
class EvalConfig:
    """Options for :func:`benchmark_decoder`.

    This is a dataclass.
    """

    #: Number of trials sampled at once
    batch_size: int = 8192
    #: Whether to measure decoding time (timing adds a small overhead per trial)
    enable_clock: bool = True
    #: Seed for Stim's sampler (``None``: draw one from :data:`matchdec.rng`)
    seed: Optional[int] = None
    #: Stop after this many logical errors (``None``: run all trials)
    stop_at_k_errors: Optional[int] = None
    #: Whether to show a progress bar
    progress: bool = False

    def __post_init__(self):
        """Validate parameters."""
        if self.batch_size <= 0:
            raise ConfigurationError("batch_size must be positive")
        if self.stop_at_k_errors is not None and self.stop_at_k_errors <= 0:
            raise ConfigurationError("stop_at_k_errors must be positive")


def decode_trial(
    decoder: decoderbase.DecoderInterface,
    stats: DecoderStats,
    detector_flips: np.ndarray,
    observable_flips: np.ndarray,
    *,
    enable_clock: bool = True,
    reference: Optional[decoderbase.DecoderInterface] = None,
    trace: decoderbase.TraceSink = decoderbase.NULL_TRACE,
) -> decoderbase.DecodeResult:
    """Decode a single trial and update ``stats``.

    Args:
        decoder: The decoder.
        stats: Statistics to update.
        detector_flips: Fired detectors (one bit per detector).
        observable_flips: Sampled flips of logical observables.
        enable_clock: Whether to measure decoding time.
        reference: Decoder whose prediction is compared with ``decoder``'s.
        trace: Passed to the decoder.

    Returns:
        The prediction of ``decoder``.
    """
    detectors = [int(i) for i in np.flatnonzero(detector_flips)]
    start = time.perf_counter_ns() if enable_clock else 0
    result = decoder.decode(detectors, trace)
    elapsed_us = (time.perf_counter_ns() - start) // 1000 if enable_clock else 0
    is_error = not np.array_equal(result.flips, np.asarray(observable_flips, bool))
    stats.record(len(detectors), elapsed_us, is_error)
    if reference is not None and reference.decode(detectors) != result:
        stats.mismatches += 1
    return result


def benchmark_decoder(
    circuit: stim.Circuit,
    decoder: decoderbase.DecoderInterface,
    num_trials: int,
    config: Optional[EvalConfig] = None,
    reference: Optional[decoderbase.DecoderInterface] = None,
) -> DecoderStats:
    """Sample trials from ``circuit`` and decode them.

    Args:
        circuit: Circuit with noise, detectors and observables.
        decoder: Decoder for the circuit's detectors.
        num_trials: Number of trials.
        config: Options. Defaults to :class:`EvalConfig` defaults.
        reference: Optional reference decoder. Disagreements are counted in
            :attr:`DecoderStats.mismatches`.

    Returns:
        Accumulated statistics.
    """
    if config is None:
        config = EvalConfig()
    if circuit.num_observables > decoder.graph.n_observables:
        raise ConfigurationError(
            f"The circuit has {circuit.num_observables} observables, the decoder "
            f"only {decoder.graph.n_observables}"
        )
    seed = config.seed
    if seed is None:
        seed = int(matchdec.rng.integers(0, 2**62))
    sampler = circuit.compile_detector_sampler(seed=seed)
    stats = DecoderStats()
    n_obs = decoder.graph.n_observables

    with tqdm(total=num_trials, disable=not config.progress) as progress:
        while stats.trials < num_trials:
            shots = min(config.batch_size, num_trials - stats.trials)
            dets, obs = sampler.sample(shots, separate_observables=True)
            for trial in range(shots):
                observables = np.zeros(n_obs, dtype=bool)
                observables[: obs.shape[1]] = obs[trial]
                decode_trial(
                    decoder,
                    stats,
                    dets[trial],
                    observables,
                    enable_clock=config.enable_clock,
                    reference=reference,
                )
                progress.update(1)
                if (
                    config.stop_at_k_errors is not None
                    and stats.errors >= config.stop_at_k_errors
                ):
                    return stats
    return stats


def eval_decoder(
    circuit: stim.Circuit,
    decoder_factory: Callable[[syngraph.DecodingGraph], decoderbase.DecoderInterface],
    num_trials: int,
    config: Optional[EvalConfig] = None,
) -> DecoderStats:
    """Build the decoding graph of ``circuit``, create a decoder and benchmark it.

    Args:
        circuit: Circuit with noise, detectors and observables.
        decoder_factory: Creates the decoder from the decoding graph (e.g. a
            decoder class).
        num_trials: Number of trials.
        config: Options for :func:`benchmark_decoder`.
    """
    graph = syngraph.DecodingGraph.from_circuit(circuit)
    return benchmark_decoder(circuit, decoder_factory(graph), num_trials, config)
