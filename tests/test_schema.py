import math

import numpy as np
import pytest

from stance_cache.config import Settings
from stance_cache.exceptions import SchemaMismatchError
from stance_cache.schema import (
    SCHEMA_FIELDS,
    TOPIC_FIELD,
    VECTOR_FIELD,
    build_index_schema,
    validate_vector,
    vector_to_bytes,
)


def test_default_index_schema():
    schema = build_index_schema(Settings())
    fields = {field["name"]: field for field in schema["fields"]}

    assert schema["index"]["name"] == "cache-index"
    assert schema["index"]["prefix"] == "cache:prompt:"
    assert set(fields) == SCHEMA_FIELDS

    vector_attrs = fields[VECTOR_FIELD]["attrs"]
    assert vector_attrs["dims"] == 1536
    assert vector_attrs["algorithm"] == "hnsw"
    assert vector_attrs["distance_metric"] == "cosine"
    assert vector_attrs["m"] == 16
    assert vector_attrs["ef_construction"] == 200
    assert vector_attrs["initial_cap"] == 100
    assert fields[TOPIC_FIELD]["type"] == "tag"
    assert fields[TOPIC_FIELD]["attrs"]["case_sensitive"] is True


def test_validate_vector_accepts_matching_dimension():
    assert validate_vector(np.ones(4), 4) == [1.0, 1.0, 1.0, 1.0]


@pytest.mark.parametrize(
    "vector",
    [[0.1, 0.2, 0.3], [0.1] * 5, [[0.1, 0.2], [0.3, 0.4]], [0.1, math.nan, 0.3, 0.4], ["a", "b", "c", "d"]],
)
def test_validate_vector_rejects(vector):
    with pytest.raises(SchemaMismatchError):
        validate_vector(vector, 4)


def test_vector_to_bytes_is_little_endian_float32():
    data = vector_to_bytes([1.0, -0.5])

    assert len(data) == 8
    assert np.frombuffer(data, dtype="<f4").tolist() == [1.0, -0.5]


class TestSettings:
    def test_token_and_cost_estimates(self):
        config = Settings(chars_per_token=4, cost_per_1k_tokens=0.002)

        assert config.estimate_tokens("") == 0
        assert config.estimate_tokens("abcde") == 2
        assert config.estimate_cost(1000) == pytest.approx(0.002)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"similarity_threshold": 1.5},
            {"vector_dimension": 0},
            {"search_k": 0},
            {"embedding_provider": "gemma"},
            {"metrics_backend": "postgres"},
            {"default_topic": "  "},
        ],
    )
    def test_invalid_settings(self, overrides):
        with pytest.raises(ValueError):
            Settings(**overrides)
