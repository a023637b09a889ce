# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
"""Frontend schema definitions."""
import json


def get_exp_config_schema() -> dict:
    """Utility function to get the experiment config json schema."""
    schema = """{
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": {
            "circuit": {
                "type": "object",
                "properties": {
                    "circuit_path": {
                        "type": "string"
                    }
                },
                "required": ["circuit_path"]
            },
            "decoder": {
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "enum": [
                            "ExactDecoder",
                            "SlidingWindowDecoder",
                            "EprDecoder"
                        ]
                    },
                    "backend": {
                        "type": "string",
                        "enum": ["pymatching", "exact"]
                    },
                    "sliding": {
                        "type": "object",
                        "properties": {
                            "local_circuit_path": {
                                "type": "string"
                            },
                            "commit_size": {
                                "type": "integer",
                                "minimum": 1
                            },
                            "window_size": {
                                "type": "integer",
                                "minimum": 1
                            },
                            "detectors_per_round": {
                                "type": "integer",
                                "minimum": 1
                            },
                            "total_rounds": {
                                "type": "integer",
                                "minimum": 1
                            }
                        },
                        "required": [
                            "local_circuit_path",
                            "commit_size",
                            "window_size",
                            "detectors_per_round",
                            "total_rounds"
                        ]
                    },
                    "epr": {
                        "type": "object",
                        "properties": {
                            "inner_circuit_path": {
                                "type": "string"
                            },
                            "outer_circuit_path": {
                                "type": "string"
                            },
                            "n_super_rounds": {
                                "type": "integer",
                                "minimum": 1
                            },
                            "n_sub_rounds": {
                                "type": "integer",
                                "minimum": 1
                            },
                            "commit_size": {
                                "type": "integer",
                                "minimum": 1
                            },
                            "window_size": {
                                "type": "integer",
                                "minimum": 1
                            }
                        },
                        "required": [
                            "inner_circuit_path",
                            "outer_circuit_path",
                            "n_super_rounds",
                            "n_sub_rounds",
                            "commit_size",
                            "window_size"
                        ]
                    }
                },
                "required": ["name"]
            },
            "accelerator": {
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "enum": ["none", "fpd", "promatch"]
                    },
                    "cache_chain_limit": {
                        "type": "integer",
                        "minimum": 0
                    },
                    "do_not_predecode_if_any_without_pref": {
                        "type": "boolean"
                    },
                    "enabled": {
                        "type": "boolean"
                    }
                }
            },
            "evaluation": {
                "type": "object",
                "properties": {
                    "trials": {
                        "type": "integer",
                        "minimum": 1
                    },
                    "batch_size": {
                        "type": "integer",
                        "minimum": 1
                    },
                    "enable_clock": {
                        "type": "boolean"
                    },
                    "seed": {
                        "type": "integer",
                        "minimum": 0
                    },
                    "stop_at_k_errors": {
                        "type": "integer",
                        "minimum": 1
                    },
                    "progress": {
                        "type": "boolean"
                    }
                }
            }
        },
        "required": ["circuit", "decoder"]
    }
    """
    return json.loads(schema)
