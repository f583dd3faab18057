# Copyright 2023-present Kensho Technologies, LLC.
"""Drive a sync run: plan the queries owned by this worker, then drain them one at a time."""
from abc import ABCMeta, abstractmethod
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional

from graphql import GraphQLSchema

from .bucketing import owns_model
from .config import SyncConfig
from .incremental import (
    CheckpointTracker,
    IncrementalQuery,
    create_incremental_queries,
    get_filter_variables,
    get_partition_key,
    get_refreshed_at_millis,
    to_incremental,
)
from .node_identity import NodeIdentityCodec
from .query_analysis import analyze_query
from .record_projection import project_record
from .typedefs import PathToModel, QueryPlan, SyncMode


logger = logging.getLogger(__name__)


# (schema, timestamp type) -> one incremental query per model
IncrementalQueryGenerator = Callable[[GraphQLSchema, str], List[IncrementalQuery]]

# (query text, path to model, timestamp type) -> incremental query text
IncrementalQueryConverter = Callable[[str, PathToModel, str], str]


class GraphClient(metaclass=ABCMeta):
    """Transport to the graph: schema introspection and paginated query execution."""

    @abstractmethod
    async def introspect(self, graph: str) -> GraphQLSchema:
        """Return the schema of the graph."""

    @abstractmethod
    def node_iterable(
        self, graph: str, query_text: str, page_size: int, variables: Mapping[str, Any]
    ) -> AsyncIterator[Dict[str, Any]]:
        """Return the records of the query's model, fetching them page by page.

        Args:
            graph: name of the graph to query
            query_text: query selecting the records of a single model
            page_size: number of records to fetch per request
            variables: values of the query's variables, e.g. the incremental $from and $to

        Returns:
            async iterator over the records, each shaped like the selection of the model
        """


def make_checkpoint_tracker(
    sync_mode: SyncMode, state: Optional[Mapping[str, Mapping[str, Any]]]
) -> CheckpointTracker:
    """Return the tracker to use for a run. Only incremental runs resume from the given state."""
    if sync_mode == SyncMode.INCREMENTAL:
        return CheckpointTracker.from_state(state)
    return CheckpointTracker()


class GraphSync:
    """Fetch, project and emit the records of every query owned by this worker."""

    def __init__(
        self,
        config: SyncConfig,
        client: GraphClient,
        codec: NodeIdentityCodec,
        query_generator: IncrementalQueryGenerator = create_incremental_queries,
        query_converter: IncrementalQueryConverter = to_incremental,
    ) -> None:
        """Create a sync for the given configuration.

        Args:
            config: configuration of this worker. Validated here, so that configuration errors
                    surface before any request is made.
            client: transport to the graph
            codec: decoder of the node ids found in result documents
            query_generator: produces the per-model queries synced when no query is configured
            query_converter: converts a hand-written query into its incremental form

        Raises:
            - ConfigurationError if the configuration is invalid
        """
        config.validate()
        self.config = config
        self.client = client
        self.codec = codec
        self.query_generator = query_generator
        self.query_converter = query_converter

    def _owns_query(self, query: IncrementalQuery) -> bool:
        """Return True if the generated query's model belongs to this worker's bucket."""
        return owns_model(
            query.model_name,
            self.config.effective_bucket_id,
            self.config.effective_bucket_total,
            self.config.models_filter,
        )

    async def plan_queries(self) -> List[QueryPlan]:
        """Return the plans of every query this worker syncs, in the order they are synced.

        All queries are analyzed before any of them is run, so that invalid queries fail the
        run before it fetches anything.
        """
        schema = await self.client.introspect(self.config.graph)
        if self.config.query:
            logger.debug("Single query specified")
            return [analyze_query(self.config.query, schema, incremental=False)]

        queries = self.query_generator(schema, self.config.timestamp_type)
        logger.debug(
            "No query specified. Will execute up to %s queries to fetch all models", len(queries)
        )
        owned_queries = [query for query in queries if self._owns_query(query)]
        logger.info(
            "Bucket %s of %s owns %s of %s models",
            self.config.effective_bucket_id,
            self.config.effective_bucket_total,
            len(owned_queries),
            len(queries),
        )
        return [
            analyze_query(query.query_text, schema, incremental=True) for query in owned_queries
        ]

    async def read_records(
        self, plan: QueryPlan, sync_mode: SyncMode, tracker: CheckpointTracker
    ) -> AsyncIterator[Dict[str, Any]]:
        """Fetch the plan's records and yield them projected, advancing the plan's checkpoint.

        Records whose own id cannot be decoded are not emitted. Errors raised by the client
        propagate, leaving the checkpoint at the last record consumed.
        """
        partition_key = get_partition_key(plan)
        logger.debug("Processing query for partition %s: %s", partition_key, plan.query_text)

        query_text = plan.query_text
        if sync_mode == SyncMode.INCREMENTAL:
            if plan.incremental:
                logger.debug("Query is in incremental format, no conversion is needed")
            else:
                query_text = self.query_converter(
                    plan.query_text, plan.path_to_model, self.config.timestamp_type
                )
                logger.debug("Query was converted to incremental format: %s", query_text)

        # Generated queries declare the filter variables, so they are bound in every sync mode.
        variables: Dict[str, Any] = {}
        if sync_mode == SyncMode.INCREMENTAL or plan.incremental:
            lower_bound_millis = 0
            if sync_mode == SyncMode.INCREMENTAL:
                lower_bound_millis = tracker.checkpoint(partition_key)
            variables = get_filter_variables(lower_bound_millis)

        emitted_count = 0
        dropped_count = 0
        async for document in self.client.node_iterable(
            self.config.graph, query_text, self.config.page_size, variables
        ):
            tracker.advance(partition_key, get_refreshed_at_millis(document))
            record = project_record(document, plan, self.codec, self.config.result_model)
            if record is None:
                dropped_count += 1
                continue
            emitted_count += 1
            yield record

        logger.info(
            "Emitted %s and dropped %s %s records",
            emitted_count,
            dropped_count,
            plan.path_to_model.model_name,
        )

    async def read_all(
        self, sync_mode: SyncMode, tracker: CheckpointTracker
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield the projected records of every owned query, draining one query at a time."""
        for plan in await self.plan_queries():
            async for record in self.read_records(plan, sync_mode, tracker):
                yield record
