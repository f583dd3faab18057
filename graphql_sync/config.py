# Copyright 2023-present Kensho Technologies, LLC.
from dataclasses import dataclass, field
from typing import List, Optional

from dataclasses_json import DataClassJsonMixin

from .bucketing import validate_bucket_config
from .exceptions import BucketConfigurationError, ConfigurationError
from .incremental.query_generation import DEFAULT_TIMESTAMP_TYPE
from .typedefs import ResultModel


DEFAULT_PAGE_SIZE = 100
DEFAULT_BUCKET_ID = 1
DEFAULT_BUCKET_TOTAL = 1


@dataclass
class SyncConfig(DataClassJsonMixin):
    """Configuration of one worker syncing records out of a graph.

    Either a single explicit query is synced, or every model of the graph is synced with one
    generated incremental query per model. In the latter case, the models can be partitioned
    across workers sharing the same bucket_total and each using a distinct bucket_id.
    """

    # Name of the graph to read from.
    graph: str

    # Hand-written query to sync. When absent, every model of the graph is synced.
    query: Optional[str] = None

    # Bucket of this worker, in [1, bucket_total]. Not allowed with an explicit query.
    bucket_id: Optional[int] = None
    bucket_total: Optional[int] = None

    # Only sync the listed models. Empty means all models.
    models_filter: List[str] = field(default_factory=list)

    page_size: int = DEFAULT_PAGE_SIZE
    result_model: ResultModel = ResultModel.NESTED

    # Scalar type of the $from and $to variables of incremental queries.
    timestamp_type: str = DEFAULT_TIMESTAMP_TYPE

    @property
    def effective_bucket_id(self) -> int:
        """Return the bucket id, defaulting to the only bucket."""
        return DEFAULT_BUCKET_ID if self.bucket_id is None else self.bucket_id

    @property
    def effective_bucket_total(self) -> int:
        """Return the bucket total, defaulting to a single bucket."""
        return DEFAULT_BUCKET_TOTAL if self.bucket_total is None else self.bucket_total

    def validate(self) -> None:
        """Raise a ConfigurationError describing the first problem with the configuration."""
        if not self.graph:
            raise ConfigurationError("Graph name was not provided")

        if self.query:
            if self.bucket_id is not None:
                raise BucketConfigurationError(
                    "Bucket id cannot be used in combination with query"
                )
            if self.bucket_total is not None:
                raise BucketConfigurationError(
                    "Bucket total cannot be used in combination with query"
                )

        validate_bucket_config(self.effective_bucket_id, self.effective_bucket_total)

        if (
            not isinstance(self.page_size, int)
            or isinstance(self.page_size, bool)
            or self.page_size <= 0
        ):
            raise ConfigurationError("Page size must be positive")

        if not isinstance(self.result_model, ResultModel):
            raise ConfigurationError(f"Unknown result model {self.result_model}")
