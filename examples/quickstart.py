# %% Import necessary objects and functions   # noqa: D100
import numpy as np
import stim

import matchdec
from matchdec import decoders, evaluation
from matchdec.syngraph import DecodingGraph

# %% Set fixed RNG seed, so we always get the same results
matchdec.rng = np.random.default_rng(seed=1234567890)

# %% Create a noisy memory experiment with Stim
circuit = stim.Circuit.generated(
    "repetition_code:memory",
    rounds=8,
    distance=5,
    after_clifford_depolarization=0.02,
    before_measure_flip_probability=0.01,
)

# %% The decoding graph has one vertex per detector and one boundary vertex
graph = DecodingGraph.from_circuit(circuit)
print(graph)

# %% Decode a single sample and follow what the decoder does
sampler = circuit.compile_detector_sampler(seed=1)
dets, obs = sampler.sample(1, separate_observables=True)
decoder = decoders.ExactDecoder(graph)
trace = decoders.ListTrace()
result = decoder.decode_syndrome(dets[0], trace)
print("\n".join(trace.lines))
print("predicted:", result.flipped(), "actual:", np.flatnonzero(obs[0]).tolist())

# %% The sliding-window decoder only needs a local graph covering
# ``window_size + 1`` rounds
local_circuit = stim.Circuit.generated(
    "repetition_code:memory",
    rounds=4,
    distance=5,
    after_clifford_depolarization=0.02,
    before_measure_flip_probability=0.01,
)
sliding = decoders.SlidingWindowDecoder(
    DecodingGraph.from_circuit(local_circuit),
    commit_size=2,
    window_size=4,
    detectors_per_round=4,
    total_rounds=8,
    # Pre-decoders see indices of the whole stream
    stream_graph=graph,
)

# %% Benchmark the decoders, with and without a pre-decoder
for name, dec in [
    ("exact", decoder),
    ("exact + fpd", decoders.FpdDecoder(decoders.ExactDecoder(graph))),
    ("sliding", sliding),
    ("sliding + promatch", decoders.PromatchDecoder(sliding)),
]:
    stats = evaluation.benchmark_decoder(circuit, dec, 10_000)
    print(name)
    print(stats.report())
