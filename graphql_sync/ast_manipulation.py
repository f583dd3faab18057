# Copyright 2019-present Kensho Technologies, LLC.
from graphql.error import GraphQLSyntaxError
from graphql.language.ast import (
    DocumentNode,
    FieldNode,
    InlineFragmentNode,
    OperationDefinitionNode,
    OperationType,
    SelectionNode,
)
from graphql.language.parser import parse

from .exceptions import GraphQLParsingError


def get_ast_field_name(ast):
    """Return the field name for the given AST node."""
    return ast.name.value


def get_ast_response_key(ast: FieldNode) -> str:
    """Return the key under which the field's value appears in a result document."""
    if ast.alias is not None:
        return ast.alias.value
    return get_ast_field_name(ast)


def get_human_friendly_ast_field_name(ast):
    """Return a human-friendly name for the AST node, suitable for error messages."""
    if isinstance(ast, InlineFragmentNode):
        return "type coercion to {}".format(ast.type_condition)
    elif isinstance(ast, OperationDefinitionNode):
        return "{} operation definition".format(ast.operation)

    return get_ast_field_name(ast)


def safe_parse_graphql(graphql_string: str) -> DocumentNode:
    """Return an AST representation of the given GraphQL input, reraising GraphQL library errors."""
    try:
        ast = parse(graphql_string)
    except GraphQLSyntaxError as e:
        raise GraphQLParsingError(e) from e

    return ast


def get_only_query_definition(document_ast, desired_error_type) -> OperationDefinitionNode:
    """Assert that the Document AST contains only a single definition for a query, and return it."""
    if not isinstance(document_ast, DocumentNode) or not document_ast.definitions:
        raise AssertionError(
            'Received an unexpected value for "document_ast": {}'.format(document_ast)
        )

    if len(document_ast.definitions) != 1:
        raise desired_error_type(
            "Encountered multiple definitions within GraphQL input. This is not supported."
            "{}".format(document_ast.definitions)
        )

    definition_ast = document_ast.definitions[0]
    if (
        not isinstance(definition_ast, OperationDefinitionNode)
        or definition_ast.operation != OperationType.QUERY
    ):
        raise desired_error_type(
            "Expected a GraphQL document with a single query definition, but instead found "
            '"{}". This is not supported.'.format(get_human_friendly_ast_field_name(definition_ast))
        )

    return definition_ast


def get_only_selection_from_ast(ast, desired_error_type) -> SelectionNode:
    """Return the selected sub-ast, ensuring that there is precisely one."""
    selections = [] if ast.selection_set is None else ast.selection_set.selections

    if len(selections) != 1:
        ast_name = get_human_friendly_ast_field_name(ast)
        if selections:
            selection_names = [
                get_human_friendly_ast_field_name(selection_ast) for selection_ast in selections
            ]
            raise desired_error_type(
                "Expected an AST with exactly one selection, but found "
                "{} selections at AST node named {}: {}".format(
                    len(selection_names), ast_name, selection_names
                )
            )
        else:
            raise desired_error_type(
                "Expected an AST with exactly one selection, but got "
                "one with no selections. Error near AST node named: {}".format(ast_name)
            )

    return selections[0]
