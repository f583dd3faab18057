# Copyright 2023-present Kensho Technologies, LLC.
class GraphQLSyncError(Exception):
    """Generic error when syncing records out of a graph."""


class GraphQLParsingError(GraphQLSyncError):
    """Exception raised when the provided GraphQL string could not be parsed."""


class GraphQLValidationError(GraphQLSyncError):
    """Exception raised when the provided GraphQL does not validate against the provided schema."""


class ConfigurationError(GraphQLSyncError):
    """Exception raised when the sync configuration is invalid.

    Configuration errors are always raised before any query is sent to the graph.
    """


class BucketConfigurationError(ConfigurationError):
    """Exception raised when the bucketing parameters are invalid.

    For example:
    - the bucket id or bucket total is not a positive integer;
    - the bucket id is larger than the bucket total;
    - bucketing parameters are combined with an explicit query.
    """


class QueryConfigurationError(ConfigurationError):
    """Exception raised when a query cannot be planned.

    This could be due to many reasons, such as:
    - the query has more than one root selection;
    - the query does not select a model type with an "id" field;
    - the query already declares the variables used for incremental filtering.
    """


class SchemaRegistryError(GraphQLSyncError):
    """Exception raised when the node identity schema document cannot be compiled."""


class NodeIdDecodeError(GraphQLSyncError):
    """Exception raised when an opaque node id cannot be decoded.

    For example:
    - the id is not valid base64;
    - the decoded bytes do not match the envelope or key schema (truncated or trailing bytes).
    """


class UnknownModelError(NodeIdDecodeError):
    """Exception raised when a node id names a model that has no registered key schema."""

    model_name: str

    def __init__(self, model_name: str) -> None:
        """Record the unknown model name for callers that want to report it."""
        super().__init__(f"No key schema registered for model {model_name}")
        self.model_name = model_name
