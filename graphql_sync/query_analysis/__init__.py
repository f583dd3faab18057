# Copyright 2023-present Kensho Technologies, LLC.
import logging

from graphql import GraphQLSchema
from graphql.validation import validate

from ..ast_manipulation import safe_parse_graphql
from ..exceptions import GraphQLValidationError
from ..typedefs import QueryPlan
from .id_field_paths import get_id_field_paths  # noqa
from .path_to_model import ID_FIELD_NAME, get_path_to_model  # noqa


logger = logging.getLogger(__name__)


def analyze_query(query_text: str, schema: GraphQLSchema, incremental: bool = False) -> QueryPlan:
    """Compute the plan used to fetch and project the records of the given query.

    Args:
        query_text: GraphQL query selecting the records of a single model
        schema: schema of the graph the query is run against
        incremental: whether the query already accepts the $from and $to filter variables

    Returns:
        QueryPlan with the path to the model and the routes of every id field in the query

    Raises:
        - GraphQLParsingError if the query is not valid GraphQL
        - GraphQLValidationError if the query does not validate against the schema
        - QueryConfigurationError if the query does not resolve to exactly one model
    """
    query_ast = safe_parse_graphql(query_text)
    validation_errors = validate(schema, query_ast)
    if validation_errors:
        raise GraphQLValidationError(f"Query does not validate: {validation_errors}")

    path_to_model = get_path_to_model(query_ast, schema)
    id_field_paths = get_id_field_paths(query_ast, path_to_model)
    logger.debug(
        "Query for model %s has path %s and id fields %s",
        path_to_model.model_name,
        path_to_model.path,
        id_field_paths,
    )
    return QueryPlan(
        query_text=query_text,
        incremental=incremental,
        path_to_model=path_to_model,
        id_field_paths=id_field_paths,
    )
