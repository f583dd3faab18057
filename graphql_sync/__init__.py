# Copyright 2023-present Kensho Technologies, LLC.
"""Commonly-used functions and data types from this package."""
from .bucketing import get_bucket, owns_model, validate_bucket_config  # noqa
from .config import SyncConfig  # noqa
from .exceptions import (  # noqa
    BucketConfigurationError,
    ConfigurationError,
    GraphQLParsingError,
    GraphQLSyncError,
    GraphQLValidationError,
    NodeIdDecodeError,
    QueryConfigurationError,
    SchemaRegistryError,
    UnknownModelError,
)
from .incremental import (  # noqa
    CheckpointTracker,
    IncrementalQuery,
    create_incremental_queries,
    get_partition_key,
    to_incremental,
)
from .node_identity import NodeIdentityCodec, SchemaRegistry  # noqa
from .query_analysis import analyze_query  # noqa
from .record_projection import project_record  # noqa
from .sync import GraphClient, GraphSync, make_checkpoint_tracker  # noqa
from .typedefs import PathToModel, QueryPlan, ResultModel, SyncMode  # noqa


__package_name__ = "graphql-sync"
__version__ = "1.0.0"
