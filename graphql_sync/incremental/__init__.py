# Copyright 2023-present Kensho Technologies, LLC.
from .checkpoint import (  # noqa
    INFINITY_MILLIS,
    CheckpointTracker,
    RefreshedAt,
    get_filter_variables,
    get_partition_key,
    get_refreshed_at_millis,
)
from .query_generation import (  # noqa
    DEFAULT_TIMESTAMP_TYPE,
    IncrementalQuery,
    create_incremental_queries,
    to_incremental,
)
