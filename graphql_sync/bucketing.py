# Copyright 2023-present Kensho Technologies, LLC.
"""Partition the models of a graph across independently running workers.

Every worker is configured with the same bucket total and a distinct bucket id in
[1, bucket_total]. Each model is assigned to exactly one bucket by hashing its name, so the
workers together cover every model exactly once without coordinating with each other.
"""
import logging
from typing import Collection, Optional

from .exceptions import BucketConfigurationError
from .global_utils import get_md5_hexdigest


logger = logging.getLogger(__name__)


def _is_positive_int(value: object) -> bool:
    """Return True if the value is a positive int, rejecting bools."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_bucket_config(bucket_id: int, bucket_total: int) -> None:
    """Raise BucketConfigurationError unless 1 <= bucket_id <= bucket_total."""
    if not _is_positive_int(bucket_id):
        raise BucketConfigurationError("Bucket id must be positive")
    if not _is_positive_int(bucket_total):
        raise BucketConfigurationError("Bucket total must be positive")
    if bucket_id > bucket_total:
        raise BucketConfigurationError(
            f"Bucket id ({bucket_id}) cannot be larger than Bucket total ({bucket_total})"
        )


def get_bucket(model_name: str, bucket_total: int) -> int:
    """Return the bucket in [1, bucket_total] that owns the model.

    The assignment only depends on the model name and the bucket total, so it is stable across
    processes and runs.
    """
    if not _is_positive_int(bucket_total):
        raise BucketConfigurationError("Bucket total must be positive")

    hash_prefix = get_md5_hexdigest(model_name)[:8]
    return int(hash_prefix, 16) % bucket_total + 1


def owns_model(
    model_name: str,
    bucket_id: int,
    bucket_total: int,
    models_filter: Optional[Collection[str]] = None,
) -> bool:
    """Return True if the worker with the given bucket id should sync the model.

    Args:
        model_name: name of the model, e.g. "vcs_PullRequest"
        bucket_id: bucket of the current worker, in [1, bucket_total]
        bucket_total: number of buckets the models are partitioned into
        models_filter: optional allow-list of model names. When non-empty, models not in it are
                       never owned, regardless of their bucket.

    Returns:
        whether the model belongs to this worker
    """
    if models_filter and model_name not in models_filter:
        logger.debug("Skipping model %s, which is not in the models filter", model_name)
        return False

    bucket = get_bucket(model_name, bucket_total)
    if bucket != bucket_id:
        logger.debug(
            "Skipping model %s, which belongs to bucket %s and not %s",
            model_name,
            bucket,
            bucket_id,
        )
        return False
    return True
