# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
import textwrap
from pathlib import Path

import jsonschema
import pytest as pt
import stim
import toml

from matchdec import decoders, evaluation
from matchdec.frontend import (
    AcceleratorConfig,
    CircuitConfig,
    DecoderConfig,
    EvaluationConfig,
    ExperimentConfig,
    SlidingWindowConfig,
)


def _write_circuit(path: Path, rounds: int) -> str:
    circuit = stim.Circuit.generated(
        "repetition_code:memory",
        rounds=rounds,
        distance=3,
        after_clifford_depolarization=0.01,
    )
    path.write_text(str(circuit))
    return str(path)


@pt.fixture
def circuit_path(tmp_path: Path) -> str:
    return _write_circuit(tmp_path / "memory_r4.stim", rounds=4)


@pt.fixture
def local_circuit_path(tmp_path: Path) -> str:
    return _write_circuit(tmp_path / "memory_r2.stim", rounds=2)


class TestDecoderConfig:
    @pt.mark.parametrize(
        "decoder_dict, output_obj",
        [
            (dict(), DecoderConfig(name="ExactDecoder", backend="pymatching")),
            (dict(name="ExactDecoder"), DecoderConfig()),
            (
                dict(
                    name="SlidingWindowDecoder",
                    backend="exact",
                    sliding=dict(
                        local_circuit_path="local.stim",
                        commit_size=1,
                        window_size=2,
                        detectors_per_round=2,
                        total_rounds=4,
                    ),
                ),
                DecoderConfig(
                    name="SlidingWindowDecoder",
                    backend="exact",
                    sliding=SlidingWindowConfig(
                        local_circuit_path="local.stim",
                        commit_size=1,
                        window_size=2,
                        detectors_per_round=2,
                        total_rounds=4,
                    ),
                ),
            ),
        ],
    )
    def test_from_dict(self, decoder_dict: dict, output_obj: DecoderConfig) -> None:
        assert DecoderConfig.from_dict(decoder_dict) == output_obj

    def test_as_dict_drops_unset_sections(self) -> None:
        assert DecoderConfig().as_dict() == dict(name="ExactDecoder", backend="pymatching")

    @pt.mark.parametrize(
        "input_dict, err_msg",
        [
            (dict(name="UnionFindDecoder"), "UnionFindDecoder is not yet supported!"),
            (dict(backend="fusion_blossom"), "Backend fusion_blossom is not yet supported!"),
            (
                dict(name="SlidingWindowDecoder"),
                "SlidingWindowDecoder requires [decoder.sliding]",
            ),
            (dict(name="EprDecoder"), "EprDecoder requires [decoder.epr]"),
        ],
    )
    def test_from_dict_errors(self, input_dict: dict, err_msg: str) -> None:
        with pt.raises(ValueError) as err:
            DecoderConfig.from_dict(input_dict)
        assert str(err.value) == err_msg

    def test_update(self) -> None:
        conf = DecoderConfig()
        conf.update(backend="exact", unknown=3)
        assert conf.backend == "exact"
        with pt.raises(ValueError, match="not yet supported"):
            conf.update(name="Foo")


class TestSlidingWindowConfig:
    @pt.mark.parametrize(
        "changes, err_msg",
        [
            (dict(commit_size=0), "commit_size must be a positive integer!"),
            (dict(total_rounds=2.5), "total_rounds must be a positive integer!"),
            (
                dict(commit_size=3, window_size=2),
                "window_size must not be smaller than commit_size",
            ),
        ],
    )
    def test_errors(self, changes: dict, err_msg: str) -> None:
        params = dict(
            local_circuit_path="local.stim",
            commit_size=1,
            window_size=2,
            detectors_per_round=2,
            total_rounds=4,
        )
        params.update(changes)
        with pt.raises(ValueError) as err:
            SlidingWindowConfig.from_dict(params)
        assert str(err.value) == err_msg


class TestAcceleratorConfig:
    def test_defaults(self) -> None:
        conf = AcceleratorConfig.from_dict({})
        assert conf.name == "none"
        assert conf.as_dict() == dict(
            name="none",
            cache_chain_limit=3,
            do_not_predecode_if_any_without_pref=True,
            enabled=True,
        )

    @pt.mark.parametrize(
        "input_dict, err_msg",
        [
            (dict(name="astrea"), "astrea is not yet supported!"),
            (dict(name="fpd", cache_chain_limit=-1), "cache_chain_limit must not be negative"),
        ],
    )
    def test_from_dict_errors(self, input_dict: dict, err_msg: str) -> None:
        with pt.raises(ValueError) as err:
            AcceleratorConfig.from_dict(input_dict)
        assert str(err.value) == err_msg

    def test_wrap(self, stream_graph) -> None:
        exact = decoders.ExactDecoder(stream_graph(n_rounds=2, detectors_per_round=3))
        assert AcceleratorConfig().wrap(exact) is exact
        fpd = AcceleratorConfig(name="fpd", cache_chain_limit=1).wrap(exact)
        assert isinstance(fpd, decoders.FpdDecoder)
        assert fpd.config == decoders.FpdConfig(cache_chain_limit=1)
        promatch = AcceleratorConfig(name="promatch", enabled=False).wrap(exact)
        assert isinstance(promatch, decoders.PromatchDecoder)
        assert not promatch.enabled


class TestEvaluationConfig:
    def test_eval_config(self) -> None:
        conf = EvaluationConfig(trials=10, batch_size=4, seed=7)
        assert conf.eval_config() == evaluation.EvalConfig(batch_size=4, seed=7)
        assert conf.as_dict() == dict(
            trials=10, batch_size=4, enable_clock=True, seed=7, progress=False
        )

    @pt.mark.parametrize(
        "input_dict, err_msg",
        [
            (dict(trials=0), "trials must be a positive integer!"),
            (dict(batch_size=0), "batch_size must be positive"),
            (dict(stop_at_k_errors=0), "stop_at_k_errors must be positive"),
        ],
    )
    def test_from_dict_errors(self, input_dict: dict, err_msg: str) -> None:
        with pt.raises(ValueError) as err:
            EvaluationConfig.from_dict(input_dict)
        assert str(err.value) == err_msg


class TestExperimentConfig:
    def test_from_dict(self) -> None:
        conf = ExperimentConfig.from_dict(
            dict(circuit=dict(circuit_path="memory.stim"), evaluation=dict(trials=5))
        )
        assert conf.circuit_conf == CircuitConfig(circuit_path="memory.stim")
        assert conf.decoder_conf == DecoderConfig()
        assert conf.accelerator_conf == AcceleratorConfig()
        assert conf.evaluation_conf.trials == 5
        assert conf.validate()

    def test_circuit_is_required(self) -> None:
        with pt.raises(ValueError, match="circuit_path is required"):
            ExperimentConfig.from_dict(dict(decoder=dict(name="ExactDecoder")))

    def test_not_built(self) -> None:
        conf = ExperimentConfig(circuit_conf=CircuitConfig(circuit_path="memory.stim"))
        with pt.raises(ValueError, match="not been loaded"):
            _ = conf.circuit
        with pt.raises(ValueError, match="not been instantiated"):
            _ = conf.decoder

    def test_toml_round_trip(self, tmp_path: Path, circuit_path: str) -> None:
        conf = ExperimentConfig.from_dict(
            dict(
                circuit=dict(circuit_path=circuit_path),
                decoder=dict(name="ExactDecoder"),
                accelerator=dict(name="fpd", cache_chain_limit=2),
                evaluation=dict(trials=50, seed=3),
            )
        )
        toml_path = str(tmp_path / "experiment.toml")
        conf.dump_toml(toml_path)
        assert ExperimentConfig.load_toml(toml_path).as_dict() == conf.as_dict()

    def test_json_round_trip(self, tmp_path: Path, circuit_path: str) -> None:
        conf = ExperimentConfig.from_dict(
            dict(
                circuit=dict(circuit_path=circuit_path),
                decoder=dict(name="ExactDecoder"),
            )
        )
        json_path = str(tmp_path / "experiment.json")
        conf.dump_json(json_path)
        assert ExperimentConfig.load_json(json_path).as_dict() == conf.as_dict()

    def test_schema_violation(self, tmp_path: Path, circuit_path: str) -> None:
        toml_path = tmp_path / "bad.toml"
        toml_path.write_text(
            toml.dumps(
                dict(
                    circuit=dict(circuit_path=circuit_path),
                    decoder=dict(name="ExactDecoder", backend="fusion_blossom"),
                )
            )
        )
        with pt.raises(jsonschema.ValidationError):
            ExperimentConfig.load_toml(str(toml_path))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pt.raises(FileNotFoundError):
            ExperimentConfig.load_toml(str(tmp_path / "missing.toml"))
        conf = ExperimentConfig.from_dict(
            dict(circuit=dict(circuit_path=str(tmp_path / "missing.stim")))
        )
        with pt.raises(FileNotFoundError):
            conf.build()

    def test_build_and_run(self, circuit_path: str) -> None:
        conf = ExperimentConfig.from_dict(
            dict(
                circuit=dict(circuit_path=circuit_path),
                decoder=dict(name="ExactDecoder"),
                accelerator=dict(name="promatch"),
                evaluation=dict(trials=200, batch_size=64, seed=11),
            )
        )
        conf.build()
        assert isinstance(conf.decoder, decoders.PromatchDecoder)
        assert isinstance(conf.decoder.wrapped, decoders.ExactDecoder)
        assert conf.circuit.num_detectors == 10
        stats = conf.run()
        assert stats.trials == 200
        assert stats.logical_error_rate < 0.1

    def test_build_sliding_window_decoder(
        self, circuit_path: str, local_circuit_path: str
    ) -> None:
        conf = ExperimentConfig.from_dict(
            dict(
                circuit=dict(circuit_path=circuit_path),
                decoder=dict(
                    name="SlidingWindowDecoder",
                    sliding=dict(
                        local_circuit_path=local_circuit_path,
                        commit_size=1,
                        window_size=2,
                        detectors_per_round=2,
                        total_rounds=4,
                    ),
                ),
            )
        )
        conf.build()
        assert isinstance(conf.decoder, decoders.SlidingWindowDecoder)
        assert isinstance(conf.decoder.backend, decoders.PyMatchingBackend)
        assert conf.decoder.graph.n_detectors == 6
        assert conf.decoder.input_graph.n_detectors == 10

    @pt.mark.parametrize("accelerator", ["fpd", "promatch"])
    def test_run_sliding_window_decoder_with_accelerator(
        self, tmp_path: Path, circuit_path: str, local_circuit_path: str, accelerator
    ) -> None:
        toml_path = tmp_path / "experiment.toml"
        toml_path.write_text(
            textwrap.dedent(
                f"""
                [circuit]
                circuit_path = "{circuit_path}"

                [decoder]
                name = "SlidingWindowDecoder"
                backend = "pymatching"

                [decoder.sliding]
                local_circuit_path = "{local_circuit_path}"
                commit_size = 1
                window_size = 2
                detectors_per_round = 2
                total_rounds = 4

                [accelerator]
                name = "{accelerator}"
                cache_chain_limit = 3

                [evaluation]
                trials = 500
                batch_size = 128
                seed = 1234
                """
            )
        )
        conf = ExperimentConfig.load_toml(str(toml_path))
        conf.build()
        assert isinstance(conf.decoder.wrapped, decoders.SlidingWindowDecoder)
        assert conf.decoder.graph is conf.decoder.wrapped.input_graph
        stats = conf.run()
        assert stats.trials == 500
        assert stats.logical_error_rate < 0.1
