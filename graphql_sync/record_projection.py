# Copyright 2023-present Kensho Technologies, LLC.
"""Turn the result documents of a query into the records emitted downstream.

Projecting a document:
- replaces every opaque node id selected by the query with the structured key it encodes, e.g.
  {"number": 1, "author": {"id": "<opaque>"}} becomes {"number": 1, "author": {"uid": "alice"}};
- merges the fields of the record's own key into the record, keeping its raw "id";
- strips the fields only used for checkpointing;
- reshapes the record into the configured result model.
"""
from copy import deepcopy
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import funcy

from .exceptions import NodeIdDecodeError
from .global_utils import Route, without_callables
from .incremental.checkpoint import METADATA_FIELD_NAME, REFRESHED_AT_FIELD_NAME
from .node_identity import NodeIdentityCodec
from .typedefs import PathToModel, QueryPlan, ResultModel


logger = logging.getLogger(__name__)


BOOKKEEPING_FIELD_NAMES = (METADATA_FIELD_NAME, REFRESHED_AT_FIELD_NAME)

# How much of an undecodable node id to include in log messages.
_LOGGED_VALUE_PREFIX_LENGTH = 24

Container = Union[Dict[str, Any], List[Any]]


def _iter_route_locations(
    container: Container, slot: Union[str, int], route: Route
) -> Iterator[Tuple[Container, Union[str, int]]]:
    """Yield (container, slot) for every value found by following the route from container[slot].

    Lists met along the way are fanned out over, so a route through a list of relations yields
    one location per element. Branches that are missing or null are skipped.
    """
    value = container[slot]
    if isinstance(value, list):
        for index in range(len(value)):
            yield from _iter_route_locations(value, index, route)
    elif not route:
        yield container, slot
    elif isinstance(value, dict) and value.get(route[0]) is not None:
        yield from _iter_route_locations(value, route[0], route[1:])


def _describe_value(value: Any) -> str:
    """Return a short representation of a node id value for log messages."""
    if isinstance(value, str):
        return repr(value[:_LOGGED_VALUE_PREFIX_LENGTH])
    return repr(type(value))


def _substitute_nested_node_ids(
    document: Dict[str, Any], route: Route, codec: NodeIdentityCodec
) -> None:
    """Replace each object holding the id at the end of the route with the key it encodes."""
    parent_route, id_key = route[:-1], route[-1]
    for container, slot in _iter_route_locations({"": document}, "", parent_route):
        parent = container[slot]
        if not isinstance(parent, dict) or parent.get(id_key) is None:
            continue

        node_id = parent[id_key]
        try:
            container[slot] = codec.decode(node_id)
        except NodeIdDecodeError as e:
            logger.warning(
                "Rejecting undecodable node id %s at route %s: %s",
                _describe_value(node_id),
                list(route),
                e,
            )
            container[slot] = None


def substitute_node_ids(
    document: Dict[str, Any], plan: QueryPlan, codec: NodeIdentityCodec
) -> Optional[Dict[str, Any]]:
    """Return a copy of the document with every node id replaced by its decoded key.

    Args:
        document: one record of the plan's model, as returned by the graph
        plan: plan of the query that returned the document
        codec: decoder for the node ids found in the document

    Returns:
        the document with decoded keys, or None if the record's own id could not be decoded.
        Relations whose id could not be decoded are set to null.
    """
    result = deepcopy(document)

    root_key = None
    nested_routes = []
    for route in plan.id_field_paths:
        if len(route) == 1:
            root_key = route[0]
        else:
            nested_routes.append(route)

    root_decoded_key: Dict[str, Any] = {}
    if root_key is not None and result.get(root_key) is not None:
        root_node_id = result[root_key]
        try:
            root_decoded_key = codec.decode(root_node_id)
        except NodeIdDecodeError as e:
            logger.error(
                "Dropping %s record with undecodable node id %s: %s",
                plan.path_to_model.model_name,
                _describe_value(root_node_id),
                e,
            )
            return None

    # Deeper routes first, so replacing a relation never hides an id nested below it.
    for route in sorted(nested_routes, key=len, reverse=True):
        _substitute_nested_node_ids(result, route, codec)

    result.update(without_callables(root_decoded_key))
    return result


def strip_bookkeeping_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    """Remove the fields only used for checkpointing from the record, in place, and return it."""
    for field_name in BOOKKEEPING_FIELD_NAMES:
        record.pop(field_name, None)
    return record


def reshape_record(
    record: Dict[str, Any], path_to_model: PathToModel, result_model: ResultModel
) -> Dict[str, Any]:
    """Place the record in the layout of the given result model.

    Flat records are wrapped under the model name, e.g. {"vcs_PullRequest": record}.
    Nested records are the only element of a list at the model's path in the query, e.g. for the
    path ["vcs", "pullRequests", "nodes"]: {"vcs": {"pullRequests": {"nodes": [record]}}}.
    """
    if result_model == ResultModel.FLAT:
        return {path_to_model.model_name: record}
    elif result_model == ResultModel.NESTED:
        return funcy.set_in({}, list(path_to_model.path), [record])
    else:
        raise AssertionError(f"Unexpected result model {result_model}.")


def project_record(
    document: Dict[str, Any],
    plan: QueryPlan,
    codec: NodeIdentityCodec,
    result_model: ResultModel,
) -> Optional[Dict[str, Any]]:
    """Return the record to emit for the document, or None if the record must be dropped."""
    record = substitute_node_ids(document, plan, codec)
    if record is None:
        return None
    return reshape_record(strip_bookkeeping_fields(record), plan.path_to_model, result_model)
