# Copyright 2023-present Kensho Technologies, LLC.
from typing import Any, List, Tuple

from graphql.language.ast import DocumentNode, FieldNode
from graphql.language.visitor import Visitor, visit

from ..ast_manipulation import get_ast_field_name, get_ast_response_key
from ..global_utils import Route
from ..typedefs import PathToModel
from .path_to_model import ID_FIELD_NAME


class IdFieldPathVisitor(Visitor):
    def __init__(self, model_path: Route) -> None:
        """Create a visitor collecting the route of every id field in a query AST.

        Args:
            model_path: response keys leading to the model's records. Once the traversal reaches
                        this path, the route restarts from empty, so routes of ids selected on
                        the model or below it are relative to the model.
        """
        super().__init__()
        self.model_path = model_path
        # Acts like a stack of the response keys of the fields enclosing the current node.
        # The last item is the top of the stack.
        self.route: List[str] = []
        self.id_field_paths: List[Route] = []

    def enter_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Push the field onto the route, and record it if it is an id field."""
        self.route.append(get_ast_response_key(node))
        if tuple(self.route) == self.model_path:
            self.route = []

        if get_ast_field_name(node) == ID_FIELD_NAME:
            self.id_field_paths.append(tuple(self.route))

    def leave_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Pop the field from the route."""
        # The route is empty when leaving the model field itself, or any field enclosing it.
        if self.route:
            self.route.pop()


def get_id_field_paths(query_ast: DocumentNode, path_to_model: PathToModel) -> Tuple[Route, ...]:
    """Return the routes of all id fields selected in the query, in selection order."""
    visitor = IdFieldPathVisitor(path_to_model.path)
    visit(query_ast, visitor)
    return tuple(visitor.id_field_paths)
