# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Front-end configuration processing for running decoding benchmarks.

An experiment is described by a ``toml`` (or ``json``) file, e.g.

.. code-block:: toml

    [circuit]
    circuit_path = "memory_d5_r8.stim"

    [decoder]
    name = "SlidingWindowDecoder"
    backend = "pymatching"

    [decoder.sliding]
    local_circuit_path = "memory_d5_r4.stim"
    commit_size = 2
    window_size = 4
    detectors_per_round = 4
    total_rounds = 8

    [accelerator]
    name = "fpd"
    cache_chain_limit = 3

    [evaluation]
    trials = 100000
    seed = 1234

The schema can be retrieved with :func:`~matchdec.frontend.schemas.get_exp_config_schema`.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from pprint import pformat
from typing import Any, ClassVar, Optional, cast

import numpy as np
import stim  # type: ignore
import toml  # type: ignore
from jsonschema import validate

import matchdec
from matchdec import decoders, evaluation, syngraph
from matchdec.decoders import decoderbase
from matchdec.exceptions import ConfigurationError
from matchdec.frontend import schemas


def _validate_filepath(filepath: str, load_file: bool) -> bool:
    """Validate given filepath by checking if file exists or can be created there.

    Args:
        filepath: The path to the file
        load_file: Boolean variable indicating if a file should be loaded or not

    Raises:
        NotADirectoryError: if the directory containing the file is inaccessible
        FileNotFoundError: if the given path to the file is inaccessible

    Returns:
        ``True`` if validated, else raises an Error.
    """
    fp = Path(filepath)
    if not fp.parent.exists():
        raise NotADirectoryError(
            "The given directory containing the file in inaccessible!"
        )
    if not fp.exists() and load_file:
        raise FileNotFoundError(f"The given file {filepath} is inaccessible!")

    return True


def _validate_config(config_dict: dict) -> bool:
    """Validate the experiment config using the schema.

    Args:
        config_dict : dictionary of the experiment configuration

    Returns:
        ``True`` if validated, else raises an Error. The errors raised are according to
        :func:`~jsonschema.validate`.
    """
    schema_dict = schemas.get_exp_config_schema()
    validate(config_dict, schema_dict)
    # validate will throw a detailed error message, if not assume to pass
    return True


def _load_circuit(path: str) -> stim.Circuit:
    _validate_filepath(path, load_file=True)
    return stim.Circuit.from_file(path)


def _without_none(values: dict) -> dict:
    """Drop unset options (``toml`` and the schema have no null)."""
    return {k: v for k, v in values.items() if v is not None}


@dataclass(kw_only=True)
class CircuitConfig:
    """Class to store the location of the circuit of the experiment.

    Examples:
        >>> print(CircuitConfig(circuit_path="memory.stim"))
        CircuitConfig(circuit_path='memory.stim')
    """

    circuit_path: str
    """Path to a Stim circuit file with noise, detectors and observables."""

    @classmethod
    def from_dict(cls, config_dict: dict) -> CircuitConfig:
        """Instantiate :class:`~.CircuitConfig` from config dictionary."""
        if "circuit_path" not in config_dict:
            raise ConfigurationError("circuit.circuit_path is required")
        return cls(circuit_path=cast(str, config_dict["circuit_path"]))

    def as_dict(self) -> dict[str, str]:
        """Return class attributes as dictionary."""
        return asdict(self)

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def instantiate(self) -> stim.Circuit:
        """Load the circuit."""
        return _load_circuit(self.circuit_path)


@dataclass(kw_only=True)
class SlidingWindowConfig:
    """Class to store the parameters of a sliding-window decoder.

    Raises:
        ConfigurationError: If sizes are not positive or ``window_size`` is smaller
            than ``commit_size``.
    """

    local_circuit_path: str
    """Circuit covering ``window_size + 1`` rounds (for the local decoding graph)."""
    commit_size: int
    """Number of rounds committed in each step."""
    window_size: int
    """Number of rounds in each window."""
    detectors_per_round: int
    """Number of detectors in each round."""
    total_rounds: int
    """Number of rounds of the decoded circuit."""

    def __post_init__(self):
        """Checks initialized values.

        :meta private:
        """
        for name in (
            "commit_size",
            "window_size",
            "detectors_per_round",
            "total_rounds",
        ):
            if not isinstance(getattr(self, name), int) or getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be a positive integer!")
        if self.window_size < self.commit_size:
            raise ConfigurationError("window_size must not be smaller than commit_size")

    @classmethod
    def from_dict(cls, config_dict: dict) -> SlidingWindowConfig:
        """Instantiate :class:`~.SlidingWindowConfig` from config dictionary."""
        return cls(**config_dict)

    def as_dict(self) -> dict[str, Any]:
        """Return class attributes as dictionary."""
        return asdict(self)

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self.__post_init__()


@dataclass(kw_only=True)
class EprConfig:
    """Class to store the parameters of the two-level EPR decoder.

    Raises:
        ConfigurationError: If numbers of rounds or sizes are not positive.
    """

    inner_circuit_path: str
    """Circuit of the fast substrate (``window_size + 1`` sub-rounds)."""
    outer_circuit_path: str
    """Circuit of the slow substrate and the bridging checks."""
    n_super_rounds: int
    """Number of super-rounds."""
    n_sub_rounds: int
    """Number of sub-rounds per super-round."""
    commit_size: int
    """Commit size of the inner sliding-window decoder (in sub-rounds)."""
    window_size: int
    """Window size of the inner sliding-window decoder (in sub-rounds)."""

    def __post_init__(self):
        """Checks initialized values.

        :meta private:
        """
        for name in ("n_super_rounds", "n_sub_rounds", "commit_size", "window_size"):
            if not isinstance(getattr(self, name), int) or getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be a positive integer!")

    @classmethod
    def from_dict(cls, config_dict: dict) -> EprConfig:
        """Instantiate :class:`~.EprConfig` from config dictionary."""
        return cls(**config_dict)

    def as_dict(self) -> dict[str, Any]:
        """Return class attributes as dictionary."""
        return asdict(self)

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self.__post_init__()


@dataclass(kw_only=True)
class AcceleratorConfig:
    """Class to store the configuration of an optional pre-decoder.

    Examples:
        >>> conf = AcceleratorConfig.from_dict(dict(name="fpd", cache_chain_limit=2))
        >>> conf.fpd_config()
        FpdConfig(cache_chain_limit=2, do_not_predecode_if_any_without_pref=True)
    """

    name: str = field(default="none")
    """Name of the pre-decoder (``none``, ``fpd`` or ``promatch``)."""
    cache_chain_limit: int = field(default=3)
    """Maximal number of edges of cached chains (FPD only)."""
    do_not_predecode_if_any_without_pref: bool = field(default=True)
    """Skip pre-decoding if any detector has no preference (FPD only)."""
    enabled: bool = field(default=True)
    """Whether the reduction is enabled (Promatch only)."""

    VALID_ACCELERATORS: ClassVar[tuple[str, ...]] = ("none", "fpd", "promatch")
    """
    :meta private:
    """

    def __post_init__(self):
        """Make sure we are not using an unsupported pre-decoder."""
        if self.name not in self.VALID_ACCELERATORS:
            raise ConfigurationError(f"{self.name} is not yet supported!")
        # Raises if the chain limit is invalid
        self.fpd_config()

    @classmethod
    def from_dict(cls, config_dict: dict) -> AcceleratorConfig:
        """Instantiate :class:`~.AcceleratorConfig` from config dictionary."""
        return cls(**config_dict)

    def as_dict(self) -> dict[str, Any]:
        """Return class attributes as dictionary."""
        return asdict(self)

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self.__post_init__()

    def fpd_config(self) -> decoders.FpdConfig:
        """Configuration for :class:`~matchdec.decoders.FpdDecoder`."""
        return decoders.FpdConfig(
            cache_chain_limit=self.cache_chain_limit,
            do_not_predecode_if_any_without_pref=(
                self.do_not_predecode_if_any_without_pref
            ),
        )

    def wrap(
        self, decoder: decoderbase.DecoderInterface
    ) -> decoderbase.DecoderInterface:
        """Wrap ``decoder`` in the configured pre-decoder (if any)."""
        match self.name:
            case "none":
                return decoder
            case "fpd":
                return decoders.FpdDecoder(decoder, self.fpd_config())
            case "promatch":
                return decoders.PromatchDecoder(decoder, enabled=self.enabled)
            case _:
                raise ConfigurationError(f"{self.name} is not yet supported!")


@dataclass(kw_only=True)
class DecoderConfig:
    """Class to store the config of the decoder.

    Raises:
        ConfigurationError: If name or backend are unsupported or the parameters of
            the chosen decoder are missing.

    Examples:
        >>> conf = DecoderConfig(name="ExactDecoder")
        >>> print(conf)
        DecoderConfig(name='ExactDecoder', backend='pymatching', sliding=None, epr=None)
    """

    name: str = field(default="ExactDecoder")
    """The name of the decoder used.

    Valid names are ``ExactDecoder``, ``SlidingWindowDecoder`` and ``EprDecoder``.
    """
    backend: str = field(default="pymatching")
    """Matching backend of sliding-window decoders (``pymatching`` or ``exact``)."""
    sliding: Optional[SlidingWindowConfig] = field(default=None)
    """Parameters of ``SlidingWindowDecoder``."""
    epr: Optional[EprConfig] = field(default=None)
    """Parameters of ``EprDecoder``."""

    VALID_DECODERS: ClassVar[tuple[str, ...]] = (
        "ExactDecoder",
        "SlidingWindowDecoder",
        "EprDecoder",
    )
    """
    :meta private:
    """
    VALID_BACKENDS: ClassVar[tuple[str, ...]] = ("pymatching", "exact")
    """
    :meta private:
    """

    def __post_init__(self):
        """Make sure we are not using an unsupported decoder."""
        if self.name not in self.VALID_DECODERS:
            raise ConfigurationError(f"{self.name} is not yet supported!")
        if self.backend not in self.VALID_BACKENDS:
            raise ConfigurationError(f"Backend {self.backend} is not yet supported!")
        if self.name == "SlidingWindowDecoder" and self.sliding is None:
            raise ConfigurationError("SlidingWindowDecoder requires [decoder.sliding]")
        if self.name == "EprDecoder" and self.epr is None:
            raise ConfigurationError("EprDecoder requires [decoder.epr]")

    @classmethod
    def from_dict(cls, config_dict: dict) -> DecoderConfig:
        """Instantiate :class:`~DecoderConfig` from config dictionary.

        Args:
            config_dict: Dict containing decoder configurations.
        """
        config_dict.setdefault("name", "ExactDecoder")
        config_dict.setdefault("backend", "pymatching")
        sliding = config_dict.get("sliding")
        epr = config_dict.get("epr")
        return cls(
            name=cast(str, config_dict.get("name")),
            backend=cast(str, config_dict.get("backend")),
            sliding=None if sliding is None else SlidingWindowConfig.from_dict(sliding),
            epr=None if epr is None else EprConfig.from_dict(epr),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return class attributes as dictionary."""
        return _without_none(asdict(self))

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``.

        Args:
            kwargs: Any class attribute.
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

        self.__post_init__()

    def _backend(self, graph: syngraph.DecodingGraph) -> decoderbase.MatchingBackend:
        match self.backend:
            case "pymatching":
                return decoders.PyMatchingBackend(graph)
            case "exact":
                return decoders.ExactDecoder(graph)
            case _:
                raise ConfigurationError(f"Backend {self.backend} is not yet supported!")

    def instantiate(self, circuit: stim.Circuit) -> decoderbase.DecoderInterface:
        """Instantiate the decoder for ``circuit`` with the objects' config.

        Args:
            circuit: The circuit whose detectors are decoded.

        Returns:
            An :class:`~matchdec.decoders.ExactDecoder`,
            :class:`~matchdec.decoders.SlidingWindowDecoder` or
            :class:`~matchdec.decoders.EprDecoder` object.
        """
        match self.name:
            case "ExactDecoder":
                return decoders.ExactDecoder(syngraph.graph_from_circuit(circuit))
            case "SlidingWindowDecoder":
                sliding = cast(SlidingWindowConfig, self.sliding)
                local = syngraph.graph_from_circuit(
                    _load_circuit(sliding.local_circuit_path)
                )
                return decoders.SlidingWindowDecoder(
                    local,
                    commit_size=sliding.commit_size,
                    window_size=sliding.window_size,
                    detectors_per_round=sliding.detectors_per_round,
                    total_rounds=sliding.total_rounds,
                    backend=self._backend(local),
                    # Pre-decoders see the detector indices of ``circuit``
                    stream_graph=syngraph.graph_from_circuit(circuit),
                )
            case "EprDecoder":
                epr = cast(EprConfig, self.epr)
                inner = syngraph.graph_from_circuit(
                    _load_circuit(epr.inner_circuit_path)
                )
                outer = syngraph.graph_from_circuit(
                    _load_circuit(epr.outer_circuit_path)
                )
                return decoders.EprDecoder(
                    syngraph.graph_from_circuit(circuit),
                    inner,
                    outer,
                    n_super_rounds=epr.n_super_rounds,
                    n_sub_rounds=epr.n_sub_rounds,
                    commit_size=epr.commit_size,
                    window_size=epr.window_size,
                    inner_backend=self._backend(inner),
                )
            case _:
                raise ConfigurationError(f"{self.name} is not yet supported!")


@dataclass(kw_only=True)
class EvaluationConfig:
    """Class to store the configuration of the benchmark run.

    Examples:
        >>> conf = EvaluationConfig(trials=100, seed=3)
        >>> conf.eval_config().batch_size
        8192
    """

    trials: int = field(default=10_000)
    """Number of trials."""
    batch_size: int = field(default=8192)
    """Number of trials sampled at once."""
    enable_clock: bool = field(default=True)
    """Whether decoding time is measured."""
    seed: Optional[int] = field(default=None)
    """Seed for the sampler and :data:`matchdec.rng`."""
    stop_at_k_errors: Optional[int] = field(default=None)
    """Stop after this many logical errors."""
    progress: bool = field(default=False)
    """Whether to show a progress bar."""

    def __post_init__(self):
        """Checks initialized values.

        :meta private:
        """
        if self.trials < 1:
            raise ConfigurationError("trials must be a positive integer!")
        self.eval_config()

    @classmethod
    def from_dict(cls, config_dict: dict) -> EvaluationConfig:
        """Instantiate :class:`~.EvaluationConfig` from config dictionary."""
        return cls(**config_dict)

    def as_dict(self) -> dict[str, Any]:
        """Return class attributes as dictionary."""
        return _without_none(asdict(self))

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self.__post_init__()

    def eval_config(self) -> evaluation.EvalConfig:
        """Options for :func:`~matchdec.evaluation.benchmark_decoder`."""
        return evaluation.EvalConfig(
            batch_size=self.batch_size,
            enable_clock=self.enable_clock,
            seed=self.seed,
            stop_at_k_errors=self.stop_at_k_errors,
            progress=self.progress,
        )


@dataclass(kw_only=True)
class ExperimentConfig:
    """Class to handle running a benchmark using a configuration file."""

    circuit_conf: CircuitConfig
    """Configuration of the circuit in the experiment.

    No default value. This is required from the user.
    """

    decoder_conf: DecoderConfig = field(default_factory=lambda: DecoderConfig())
    """Configuration of the decoder in the experiment.

    Defaults to an :class:`~DecoderConfig` object with default values.
    """

    accelerator_conf: AcceleratorConfig = field(
        default_factory=lambda: AcceleratorConfig()
    )
    """Configuration of the pre-decoder (none by default)."""

    evaluation_conf: EvaluationConfig = field(
        default_factory=lambda: EvaluationConfig()
    )
    """Configuration of the benchmark run."""

    _circuit: stim.Circuit | None = None
    _decoder: decoderbase.DecoderInterface | None = None

    #: Keys of the config dictionary, in the order of the fields above
    SECTIONS: ClassVar[dict[str, str]] = {
        "circuit": "circuit_conf",
        "decoder": "decoder_conf",
        "accelerator": "accelerator_conf",
        "evaluation": "evaluation_conf",
    }

    def update_rng(self):  # noqa: D102
        matchdec.rng = np.random.default_rng(seed=self.evaluation_conf.seed)

    @property
    def circuit(self) -> stim.Circuit:
        """The loaded circuit of the experiment."""
        if self._circuit is None:
            raise ValueError(
                "Circuit has not been loaded yet, use build() or "
                + "build_circuit() method to do so!"
            )
        return self._circuit

    @property
    def decoder(self) -> decoderbase.DecoderInterface:
        """The built decoder (including the pre-decoder, if any)."""
        if self._decoder is None:
            raise ValueError(
                "Decoder has not been instantiated yet, use build() or "
                + "build_decoder() method to do so!"
            )
        return self._decoder

    @classmethod
    def load_toml(cls, toml_path: str) -> ExperimentConfig:
        """Instantiate an :class:`~.ExperimentConfig` object from a ``toml`` file.

        For an example file, see :mod:`matchdec.frontend`.

        Args:
            toml_path : The path to the ``toml`` config file

        Returns:
           An :class:`~.ExperimentConfig` object containing the experiment config.
        """
        _validate_filepath(toml_path, load_file=True)
        config_dict: dict[str, Any] = toml.load(toml_path)
        _validate_config(config_dict)
        return cls.from_dict(config_dict)

    @classmethod
    def load_json(cls, json_path: str) -> ExperimentConfig:
        """Instantiate :class:`~ExperimentConfig` from a ``json`` file.

        For the schema, see :func:`~matchdec.frontend.schemas.get_exp_config_schema`.
        """
        _validate_filepath(json_path, load_file=True)
        with open(json_path) as file:
            config_dict = json.load(file)
        _validate_config(config_dict)
        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict) -> ExperimentConfig:
        """Instantiate an :class:`~ExperimentConfig` from a :class:`dict`.

        The dictionary has the same structure as the ``toml`` file (see
        :mod:`matchdec.frontend`).
        """
        config_dict.setdefault("decoder", {})
        config_dict.setdefault("accelerator", {})
        config_dict.setdefault("evaluation", {})
        return cls(
            circuit_conf=CircuitConfig.from_dict(
                cast(dict, config_dict.get("circuit", {}))
            ),
            decoder_conf=DecoderConfig.from_dict(
                cast(dict, config_dict.get("decoder"))
            ),
            accelerator_conf=AcceleratorConfig.from_dict(
                cast(dict, config_dict.get("accelerator"))
            ),
            evaluation_conf=EvaluationConfig.from_dict(
                cast(dict, config_dict.get("evaluation"))
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return all configuration sections as dictionary."""
        return {
            key: getattr(self, attr).as_dict() for key, attr in self.SECTIONS.items()
        }

    def update(self, **kwargs):
        """Update class attributes with given ``**kwargs``.

        Useful to update multiple attributes at once with a :class:`dict`.
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def validate(self) -> bool:
        """Validate the current state of configurations."""
        return _validate_config(self.as_dict())

    def __str__(self):
        """Return a slightly better string representation of this object."""
        return pformat(self, compact=False)

    def build(self) -> None:
        """Load the circuit and build the decoder."""
        self.update_rng()
        self.build_circuit()
        self.build_decoder()

    def build_circuit(self) -> None:
        """Load the circuit.

        Returns:
            None, updates :attr:`ExperimentConfig.circuit`.
        """
        self._circuit = self.circuit_conf.instantiate()

    def build_decoder(self) -> None:
        """Build the decoder and wrap it in the pre-decoder.

        Returns:
            None, updates :attr:`ExperimentConfig.decoder`.
        """
        decoder = self.decoder_conf.instantiate(self.circuit)
        self._decoder = self.accelerator_conf.wrap(decoder)

    def dump_toml(self, toml_path: str) -> None:
        """Save the config as a ``toml`` file at the given path."""
        _validate_filepath(toml_path, load_file=False)
        with open(toml_path, "w") as file:
            toml.dump(self.as_dict(), file)

    def dump_json(self, json_path: str):
        """Save the config as a ``json`` file at the given path."""
        _validate_filepath(json_path, load_file=False)
        with open(json_path, "w") as file:
            json.dump(self.as_dict(), file)

    def run(self) -> evaluation.DecoderStats:
        """Run the benchmark and return its statistics.

        :meth:`build` is called first if necessary.
        """
        if self._circuit is None or self._decoder is None:
            self.build()
        return evaluation.benchmark_decoder(
            self.circuit,
            self.decoder,
            self.evaluation_conf.trials,
            self.evaluation_conf.eval_config(),
        )
