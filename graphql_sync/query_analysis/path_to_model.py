# Copyright 2023-present Kensho Technologies, LLC.
"""Locate the list of model records inside the result document of a query.

A query selects a chain of single fields from the query root, e.g.
    { vcs { pullRequests { nodes { number author { id } } } } }
until it reaches the first field whose type is a model, i.e. an object or interface type that
declares an "id" field. Everything selected below that point describes one record of the model.
The path to the model is the chain of response keys leading to it (["vcs", "pullRequests",
"nodes"] above), and the model name is the name of that type.
"""
from typing import List, Union

from graphql import (
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLSchema,
    get_named_type,
)
from graphql.language.ast import DocumentNode, FieldNode

from ..ast_manipulation import (
    get_ast_field_name,
    get_ast_response_key,
    get_only_query_definition,
    get_only_selection_from_ast,
)
from ..exceptions import QueryConfigurationError
from ..typedefs import PathToModel


ID_FIELD_NAME = "id"


def is_model_type(graphql_type: Union[GraphQLObjectType, GraphQLInterfaceType]) -> bool:
    """Return True if instances of the type are records with their own identity."""
    return ID_FIELD_NAME in graphql_type.fields


def get_path_to_model(query_ast: DocumentNode, schema: GraphQLSchema) -> PathToModel:
    """Return the path to the singular model whose records the query returns.

    Args:
        query_ast: a query that validates against the schema
        schema: schema of the graph the query is run against

    Returns:
        PathToModel with the model's type name and the response keys leading to its records

    Raises:
        - QueryConfigurationError if the query does not resolve to exactly one model, for example
          if it selects several root fields, or reaches a scalar field before any model
    """
    current_ast = get_only_query_definition(query_ast, QueryConfigurationError)
    current_type = schema.query_type
    if current_type is None:
        raise QueryConfigurationError("The schema does not define a query root type.")

    path: List[str] = []
    while True:
        selection = get_only_selection_from_ast(current_ast, QueryConfigurationError)
        if not isinstance(selection, FieldNode):
            raise QueryConfigurationError(
                f"Expected a field selection leading to a model, but found a "
                f"{type(selection).__name__} at path {path}."
            )

        field_name = get_ast_field_name(selection)
        field_definition = current_type.fields.get(field_name)
        if field_definition is None:
            raise QueryConfigurationError(
                f"Field {field_name} does not exist on type {current_type.name}."
            )
        path.append(get_ast_response_key(selection))

        field_type = get_named_type(field_definition.type)
        if not isinstance(field_type, (GraphQLObjectType, GraphQLInterfaceType)):
            raise QueryConfigurationError(
                f"Reached field {field_name} of non-composite type {field_type} at path {path} "
                f"without finding a model type with an {ID_FIELD_NAME} field."
            )
        if is_model_type(field_type):
            return PathToModel(model_name=field_type.name, path=tuple(path))

        current_ast = selection
        current_type = field_type
