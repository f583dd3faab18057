# Copyright 2023-present Kensho Technologies, LLC.
"""High-water marks bounding the incremental fetches of each query.

The checkpoint state maps a partition key to the latest freshness timestamp seen among the
records of that partition, e.g.
    {"vcs_PullRequest": {"refreshedAtMillis": 1700000000000}}
It is loaded at the start of a run, advanced as records are consumed, and handed back to the
caller at the end of the run for persistence.
"""
from dataclasses import dataclass, field
import datetime
import logging
from typing import Any, Dict, Mapping, Optional

from ciso8601 import parse_datetime  # pylint: disable=no-name-in-module
from dataclasses_json import DataClassJsonMixin, config

from ..global_utils import get_md5_hexdigest
from ..typedefs import QueryPlan


logger = logging.getLogger(__name__)


REFRESHED_AT_FIELD_NAME = "refreshedAt"
METADATA_FIELD_NAME = "metadata"

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

# January 1, 2200. Upper bound of every incremental filter, far enough in the future to include
# records whose clocks run slightly ahead.
INFINITY_MILLIS = 7258118400000

FROM_VARIABLE_NAME = "from"
TO_VARIABLE_NAME = "to"


@dataclass
class RefreshedAt(DataClassJsonMixin):
    """The checkpoint of a single partition."""

    refreshed_at_millis: int = field(default=0, metadata=config(field_name="refreshedAtMillis"))


def millis_to_iso_string(millis: int) -> str:
    """Format epoch milliseconds as an ISO-8601 UTC string, e.g. "2200-01-01T00:00:00.000Z"."""
    instant = EPOCH + datetime.timedelta(milliseconds=millis)
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def datetime_to_millis(value: datetime.datetime) -> int:
    """Return the epoch milliseconds of the datetime, treating timezone-naive values as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return (value - EPOCH) // datetime.timedelta(milliseconds=1)


def get_refreshed_at_millis(document: Mapping[str, Any]) -> int:
    """Return the freshness timestamp of a result document in epoch milliseconds.

    The timestamp is read from the ISO-8601 "refreshedAt" field, or failing that from a numeric
    "metadata.refreshedAt" field. Documents without a usable timestamp get 0, so they never
    advance a checkpoint.
    """
    refreshed_at = document.get(REFRESHED_AT_FIELD_NAME)
    if isinstance(refreshed_at, str):
        try:
            return datetime_to_millis(parse_datetime(refreshed_at))
        except ValueError:
            logger.debug("Ignoring unparsable refreshedAt value %r", refreshed_at)
            return 0

    metadata = document.get(METADATA_FIELD_NAME)
    if isinstance(metadata, Mapping):
        refreshed_at = metadata.get(REFRESHED_AT_FIELD_NAME)

    if refreshed_at is None or isinstance(refreshed_at, bool):
        return 0
    try:
        return int(refreshed_at)
    except (OverflowError, TypeError, ValueError):
        logger.debug("Ignoring unparsable refreshedAt value %r", refreshed_at)
        return 0


def get_partition_key(plan: QueryPlan) -> str:
    """Return the key under which the checkpoint of the query is stored.

    Generated incremental queries are keyed by their model name. Hand-written queries are keyed by
    a hash of their text, so their checkpoint survives across runs as long as the text does not
    change.
    """
    if plan.incremental:
        return plan.path_to_model.model_name
    return get_md5_hexdigest(plan.query_text)


def get_filter_variables(lower_bound_millis: int) -> Dict[str, str]:
    """Return the values of the $from and $to variables of an incremental query."""
    return {
        FROM_VARIABLE_NAME: millis_to_iso_string(lower_bound_millis),
        TO_VARIABLE_NAME: millis_to_iso_string(INFINITY_MILLIS),
    }


class CheckpointTracker:
    """In-memory checkpoint state of a sync run.

    Checkpoints only move forward: advancing with an older timestamp than the stored one is a
    no-op, which makes replaying already-seen records after a restart harmless.
    """

    def __init__(self, checkpoints: Optional[Dict[str, RefreshedAt]] = None) -> None:
        """Create a tracker, optionally seeded with previously persisted checkpoints."""
        self._checkpoints: Dict[str, RefreshedAt] = dict(checkpoints or {})

    @classmethod
    def from_state(cls, state: Optional[Mapping[str, Mapping[str, Any]]]) -> "CheckpointTracker":
        """Load a tracker from its serialized form, as produced by to_state()."""
        if not state:
            return cls()
        return cls({key: RefreshedAt.from_dict(dict(value)) for key, value in state.items()})

    def to_state(self) -> Dict[str, Dict[str, Any]]:
        """Return the serializable checkpoint state, for persistence by the caller."""
        return {key: value.to_dict() for key, value in self._checkpoints.items()}

    def checkpoint(self, partition_key: str) -> int:
        """Return the high-water mark of the partition, or 0 if it has never been synced."""
        refreshed_at = self._checkpoints.get(partition_key)
        if refreshed_at is None:
            return 0
        return refreshed_at.refreshed_at_millis

    def advance(self, partition_key: str, candidate_millis: int) -> int:
        """Raise the partition's high-water mark to the candidate, if larger. Return the mark."""
        refreshed_at_millis = max(self.checkpoint(partition_key), candidate_millis)
        self._checkpoints[partition_key] = RefreshedAt(refreshed_at_millis=refreshed_at_millis)
        return refreshed_at_millis
