# Copyright 2023-present Kensho Technologies, LLC.
"""Produce queries whose records can be fetched one time range at a time.

An incremental query declares two variables bounding the freshness timestamp of the records of
its model, e.g.
    query ($from: timestamptz!, $to: timestamptz!) {
      vcs_PullRequest(where: {refreshedAt: {_gte: $from, _lt: $to}}) {
        number
        refreshedAt
      }
    }
so that each run only needs to fetch the records refreshed since the previous run's checkpoint.
"""
from copy import copy
from dataclasses import dataclass
import logging
from typing import List, Optional, Sequence, Tuple, Union

from graphql import (
    GraphQLField,
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLSchema,
    get_named_type,
    get_nullable_type,
    is_leaf_type,
    is_list_type,
    print_ast,
)
from graphql.language.ast import (
    ArgumentNode,
    DocumentNode,
    FieldNode,
    ListValueNode,
    NamedTypeNode,
    NameNode,
    NonNullTypeNode,
    ObjectFieldNode,
    ObjectValueNode,
    OperationDefinitionNode,
    OperationType,
    SelectionNode,
    SelectionSetNode,
    ValueNode,
    VariableDefinitionNode,
    VariableNode,
)

from ..ast_manipulation import (
    get_ast_field_name,
    get_ast_response_key,
    get_only_query_definition,
    safe_parse_graphql,
)
from ..exceptions import QueryConfigurationError
from ..query_analysis import ID_FIELD_NAME
from ..typedefs import PathToModel
from .checkpoint import FROM_VARIABLE_NAME, REFRESHED_AT_FIELD_NAME, TO_VARIABLE_NAME


logger = logging.getLogger(__name__)


DEFAULT_TIMESTAMP_TYPE = "timestamptz"
WHERE_ARGUMENT_NAME = "where"
AND_OPERATOR_NAME = "_and"
GTE_OPERATOR_NAME = "_gte"
LT_OPERATOR_NAME = "_lt"


@dataclass(frozen=True)
class IncrementalQuery:
    """A generated query fetching all records of a model refreshed within a time range."""

    model_name: str
    query_text: str


def _make_name(value: str) -> NameNode:
    """Return a NameNode with the given value."""
    return NameNode(value=value)


def _make_field(
    name: str,
    selections: Sequence[SelectionNode] = (),
    arguments: Sequence[ArgumentNode] = (),
) -> FieldNode:
    """Return a FieldNode without alias or directives."""
    selection_set = SelectionSetNode(selections=tuple(selections)) if selections else None
    return FieldNode(
        alias=None,
        name=_make_name(name),
        arguments=tuple(arguments),
        directives=(),
        selection_set=selection_set,
    )


def _make_variable_definitions(timestamp_type: str) -> Tuple[VariableDefinitionNode, ...]:
    """Return the non-null $from and $to variable definitions."""
    return tuple(
        VariableDefinitionNode(
            variable=VariableNode(name=_make_name(variable_name)),
            type=NonNullTypeNode(type=NamedTypeNode(name=_make_name(timestamp_type))),
            default_value=None,
            directives=(),
        )
        for variable_name in (FROM_VARIABLE_NAME, TO_VARIABLE_NAME)
    )


def _make_refreshed_at_filter() -> ObjectValueNode:
    """Return the value {refreshedAt: {_gte: $from, _lt: $to}}."""
    time_range = ObjectValueNode(
        fields=(
            ObjectFieldNode(
                name=_make_name(GTE_OPERATOR_NAME),
                value=VariableNode(name=_make_name(FROM_VARIABLE_NAME)),
            ),
            ObjectFieldNode(
                name=_make_name(LT_OPERATOR_NAME),
                value=VariableNode(name=_make_name(TO_VARIABLE_NAME)),
            ),
        )
    )
    return ObjectValueNode(
        fields=(ObjectFieldNode(name=_make_name(REFRESHED_AT_FIELD_NAME), value=time_range),)
    )


def _make_where_argument(existing_filter: Optional[ValueNode]) -> ArgumentNode:
    """Return the where argument of an incremental query, preserving any existing filter."""
    refreshed_at_filter = _make_refreshed_at_filter()
    if existing_filter is None:
        where_value: ValueNode = refreshed_at_filter
    else:
        where_value = ObjectValueNode(
            fields=(
                ObjectFieldNode(
                    name=_make_name(AND_OPERATOR_NAME),
                    value=ListValueNode(values=(existing_filter, refreshed_at_filter)),
                ),
            )
        )
    return ArgumentNode(name=_make_name(WHERE_ARGUMENT_NAME), value=where_value)


def _add_time_range_to_model_field(model_field: FieldNode) -> FieldNode:
    """Return a copy of the model field filtered on refreshedAt, and selecting it."""
    existing_filter = None
    other_arguments = []
    for argument in model_field.arguments or ():
        if argument.name.value == WHERE_ARGUMENT_NAME:
            existing_filter = argument.value
        else:
            other_arguments.append(argument)

    selections = list(model_field.selection_set.selections)
    selects_refreshed_at = any(
        isinstance(selection, FieldNode)
        and get_ast_field_name(selection) == REFRESHED_AT_FIELD_NAME
        for selection in selections
    )
    if not selects_refreshed_at:
        selections.append(_make_field(REFRESHED_AT_FIELD_NAME))

    new_field = copy(model_field)
    new_field.arguments = tuple(other_arguments) + (_make_where_argument(existing_filter),)
    new_field.selection_set = SelectionSetNode(selections=tuple(selections))
    return new_field


def _add_time_range_at_path(
    selection_set: SelectionSetNode, path: Tuple[str, ...]
) -> SelectionSetNode:
    """Return a copy of the selection set where the field at the path is filtered on refreshedAt."""
    response_key, remaining_path = path[0], path[1:]
    new_selections = []
    found = False
    for selection in selection_set.selections:
        if isinstance(selection, FieldNode) and get_ast_response_key(selection) == response_key:
            found = True
            if remaining_path:
                new_selection = copy(selection)
                new_selection.selection_set = _add_time_range_at_path(
                    selection.selection_set, remaining_path
                )
            else:
                new_selection = _add_time_range_to_model_field(selection)
            new_selections.append(new_selection)
        else:
            new_selections.append(selection)

    if not found:
        raise AssertionError(
            f"Expected to find a field selected as {response_key} in {selection_set}, but found "
            f"none. This is a bug."
        )
    return SelectionSetNode(selections=tuple(new_selections))


def to_incremental(
    query_text: str, path_to_model: PathToModel, timestamp_type: str = DEFAULT_TIMESTAMP_TYPE
) -> str:
    """Convert a query into one fetching only the records refreshed within [$from, $to).

    Args:
        query_text: query selecting the records of a single model
        path_to_model: location of the model's records in the query, as computed by
                       get_path_to_model
        timestamp_type: name of the scalar type of the $from and $to variables

    Returns:
        the text of the incremental query

    Raises:
        - QueryConfigurationError if the query already declares a $from or $to variable
    """
    query_ast = safe_parse_graphql(query_text)
    definition = get_only_query_definition(query_ast, QueryConfigurationError)

    variable_definitions = tuple(definition.variable_definitions or ())
    declared_variables = {
        variable_definition.variable.name.value for variable_definition in variable_definitions
    }
    conflicting_variables = declared_variables & {FROM_VARIABLE_NAME, TO_VARIABLE_NAME}
    if conflicting_variables:
        raise QueryConfigurationError(
            f"Query already declares variables {sorted(conflicting_variables)}, which are "
            f"reserved for incremental filtering: {query_text}"
        )

    new_definition = copy(definition)
    new_definition.variable_definitions = variable_definitions + _make_variable_definitions(
        timestamp_type
    )
    new_definition.selection_set = _add_time_range_at_path(
        definition.selection_set, path_to_model.path
    )
    return print_ast(DocumentNode(definitions=(new_definition,)))


def _get_reference_model(
    field: GraphQLField,
) -> Optional[Union[GraphQLObjectType, GraphQLInterfaceType]]:
    """Return the model a field refers to, if it is a singular reference to a model."""
    if is_list_type(get_nullable_type(field.type)):
        return None
    field_type = get_named_type(field.type)
    if isinstance(field_type, (GraphQLObjectType, GraphQLInterfaceType)):
        if ID_FIELD_NAME in field_type.fields:
            return field_type
    return None


def _make_model_selections(model_type: GraphQLObjectType) -> List[FieldNode]:
    """Select every argument-free leaf field of the model, and the id of every reference."""
    selections = []
    for field_name, field in model_type.fields.items():
        if field.args:
            continue
        if is_leaf_type(get_named_type(field.type)):
            selections.append(_make_field(field_name))
        elif _get_reference_model(field) is not None:
            selections.append(_make_field(field_name, [_make_field(ID_FIELD_NAME)]))
    return selections


def _is_incremental_root_field(field: GraphQLField) -> bool:
    """Return True if the root field lists a model that can be filtered on refreshedAt."""
    if not is_list_type(get_nullable_type(field.type)):
        return False
    model_type = get_named_type(field.type)
    return (
        isinstance(model_type, GraphQLObjectType)
        and ID_FIELD_NAME in model_type.fields
        and REFRESHED_AT_FIELD_NAME in model_type.fields
        and WHERE_ARGUMENT_NAME in field.args
    )


def create_incremental_queries(
    schema: GraphQLSchema, timestamp_type: str = DEFAULT_TIMESTAMP_TYPE
) -> List[IncrementalQuery]:
    """Return one incremental query per model that can be listed from the query root.

    Args:
        schema: schema of the graph
        timestamp_type: name of the scalar type of the $from and $to variables

    Returns:
        list of IncrementalQuery, sorted by the name of the root field listing the model
    """
    if schema.query_type is None:
        raise QueryConfigurationError("The schema does not define a query root type.")

    queries = []
    for root_field_name, root_field in sorted(schema.query_type.fields.items()):
        if not _is_incremental_root_field(root_field):
            continue

        model_type = get_named_type(root_field.type)
        model_field = _make_field(
            root_field_name,
            _make_model_selections(model_type),
            [_make_where_argument(None)],
        )
        definition = OperationDefinitionNode(
            operation=OperationType.QUERY,
            name=None,
            variable_definitions=_make_variable_definitions(timestamp_type),
            directives=(),
            selection_set=SelectionSetNode(selections=(model_field,)),
        )
        query_text = print_ast(DocumentNode(definitions=(definition,)))
        queries.append(IncrementalQuery(model_name=model_type.name, query_text=query_text))

    logger.debug("Generated %s incremental queries", len(queries))
    return queries
