"""Index schema contract.

The lookup and write paths are written against these exact field names and
types. Any migration of the Redis index must change this module in lockstep.
"""

from collections.abc import Sequence
from typing import Any

import numpy as np

from stance_cache.config import Settings
from stance_cache.exceptions import SchemaMismatchError

CONTENT_FIELD = "content"
RESPONSE_FIELD = "response"
TOPIC_FIELD = "topic"
VECTOR_FIELD = "vector"
CREATED_AT_FIELD = "created_at"
TOKENS_SAVED_FIELD = "tokens_saved"

SCHEMA_FIELDS = frozenset(
    {
        CONTENT_FIELD,
        RESPONSE_FIELD,
        TOPIC_FIELD,
        VECTOR_FIELD,
        CREATED_AT_FIELD,
        TOKENS_SAVED_FIELD,
    }
)

# Fields returned by a search (everything except the raw vector)
RETURN_FIELDS = [CONTENT_FIELD, RESPONSE_FIELD, TOPIC_FIELD, CREATED_AT_FIELD, TOKENS_SAVED_FIELD]

VECTOR_DATATYPE = "float32"

# Topics are stored as a single tag; a topic containing this would be split into several
TAG_SEPARATOR = ","

# Per field type, the attributes an existing index must share with build_index_schema
CHECKED_FIELD_ATTRS = {
    "vector": ("dims", "algorithm", "distance_metric", "datatype"),
    "tag": ("separator", "case_sensitive"),
}


def build_index_schema(settings: Settings) -> dict[str, Any]:
    """Build the redisvl schema dict for the cache index.

    Args:
        settings: Settings providing the index name, key prefix,
            vector dimension and HNSW build parameters.

    Returns:
        Schema dict accepted by ``AsyncSearchIndex.from_dict``
    """
    return {
        "index": {
            "name": settings.cache_index_name,
            "prefix": settings.cache_key_prefix,
            "key_separator": ":",
            "storage_type": "hash",
        },
        "fields": [
            {"name": CONTENT_FIELD, "type": "text", "attrs": {"sortable": True}},
            {"name": RESPONSE_FIELD, "type": "text"},
            # RediSearch tags are case-insensitive unless told otherwise
            {
                "name": TOPIC_FIELD,
                "type": "tag",
                "attrs": {"sortable": True, "case_sensitive": True, "separator": TAG_SEPARATOR},
            },
            {
                "name": VECTOR_FIELD,
                "type": "vector",
                "attrs": {
                    "dims": settings.vector_dimension,
                    "algorithm": "hnsw",
                    "distance_metric": "cosine",
                    "datatype": VECTOR_DATATYPE,
                    "m": settings.hnsw_m,
                    "ef_construction": settings.hnsw_ef_construction,
                    "initial_cap": settings.hnsw_initial_cap,
                },
            },
            {"name": CREATED_AT_FIELD, "type": "numeric", "attrs": {"sortable": True}},
            {"name": TOKENS_SAVED_FIELD, "type": "numeric"},
        ],
    }


def validate_vector(vector: Sequence[float], dimension: int) -> list[float]:
    """Check a vector against the configured dimensionality.

    Args:
        vector: Candidate embedding
        dimension: Dimension the index was created with

    Returns:
        The vector as a plain list of floats

    Raises:
        SchemaMismatchError: If the length is wrong or values are not finite
    """
    try:
        array = np.asarray(vector, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise SchemaMismatchError(f"Vector is not numeric: {e}") from e
    if array.ndim != 1 or array.shape[0] != dimension:
        raise SchemaMismatchError(
            f"Vector has shape {array.shape}, expected ({dimension},)",
            details={"expected_dimension": dimension, "actual_shape": list(array.shape)},
        )
    if not np.isfinite(array).all():
        raise SchemaMismatchError("Vector contains non-finite values")
    return [float(value) for value in vector]


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    """Encode a vector as little-endian float32 bytes for Redis hash storage."""
    return np.asarray(vector, dtype="<f4").tobytes()
