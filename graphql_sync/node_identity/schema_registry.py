# Copyright 2023-present Kensho Technologies, LLC.
"""Compile the Avro schemas that node ids are encoded with.

All named schemas live in a single schema document: a JSON list of named Avro schemas (or a
single named schema). The schemas may refer to each other by name, in any order, e.g.
    [
      {"type": "record", "name": "vcs_Commit__Key",
       "fields": [{"name": "sha", "type": "string"},
                  {"name": "repository", "type": "vcs_Repository__Key"}]},
      {"type": "record", "name": "vcs_Repository__Key",
       "fields": [{"name": "name", "type": "string"}, ...]},
      ...
    ]
The registry compiles the whole document once, ordering the top-level schemas so that every
schema is compiled after the schemas it refers to. Lookups afterwards never re-parse.
"""
import json
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple, Union

from fastavro import parse_schema
from fastavro.schema import SchemaParseException

from ..exceptions import SchemaRegistryError


logger = logging.getLogger(__name__)


AVRO_PRIMITIVE_TYPES = frozenset(
    {"null", "boolean", "int", "long", "float", "double", "bytes", "string"}
)
AVRO_NAMED_TYPES = frozenset({"record", "error", "enum", "fixed"})

# Keys with which fastavro marks a schema as already parsed, carrying the named schemas it uses.
# These are fastavro internals of its 1.x releases, hence the fastavro<2 pin in setup.py.
_PARSED_MARKER_KEY = "__fastavro_parsed"
_NAMED_SCHEMAS_KEY = "__named_schemas"

SchemaDocument = Union[str, List[Dict[str, Any]], Dict[str, Any]]


def _get_fullname(name: str, namespace: Optional[str]) -> str:
    """Return the Avro full name of a type name appearing within the given namespace."""
    if "." in name or not namespace:
        return name
    return f"{namespace}.{name}"


def _collect_names(
    schema: Any, namespace: Optional[str], defined: Set[str], referenced: Set[Tuple[str, str]]
) -> None:
    """Record the full names the schema defines, and the (full name, name) pairs it refers to."""
    if isinstance(schema, str):
        if schema not in AVRO_PRIMITIVE_TYPES:
            referenced.add((_get_fullname(schema, namespace), schema))
    elif isinstance(schema, list):
        for union_member in schema:
            _collect_names(union_member, namespace, defined, referenced)
    elif isinstance(schema, dict):
        schema_type = schema.get("type")
        if schema_type in AVRO_NAMED_TYPES:
            name = schema.get("name")
            if not isinstance(name, str):
                raise SchemaRegistryError(f"Named Avro schema without a name: {schema}")
            if "." in name:
                namespace = name.rsplit(".", 1)[0]
            else:
                namespace = schema.get("namespace", namespace)
            defined.add(_get_fullname(name, namespace))
            for field in schema.get("fields", ()):
                _collect_names(field.get("type"), namespace, defined, referenced)
        elif schema_type == "array":
            _collect_names(schema.get("items"), namespace, defined, referenced)
        elif schema_type == "map":
            _collect_names(schema.get("values"), namespace, defined, referenced)
        else:
            _collect_names(schema_type, namespace, defined, referenced)
    else:
        raise SchemaRegistryError(f"Unexpected value in Avro schema: {schema}")


def _order_by_references(schemas: List[Any]) -> List[Any]:
    """Return the top-level schemas ordered so that each comes after every schema it refers to.

    Raises:
        - SchemaRegistryError if a schema refers to a name no schema defines, or if top-level
          schemas refer to each other in a cycle
    """
    defined_names: List[Set[str]] = []
    referenced_names: List[Set[Tuple[str, str]]] = []
    definer_index: Dict[str, int] = {}
    for index, schema in enumerate(schemas):
        defined: Set[str] = set()
        referenced: Set[Tuple[str, str]] = set()
        _collect_names(schema, None, defined, referenced)
        for name in defined:
            if name in definer_index:
                raise SchemaRegistryError(f"Avro type {name} is defined more than once.")
            definer_index[name] = index
        defined_names.append(defined)
        referenced_names.append(referenced)

    dependencies: List[Set[int]] = []
    for index, referenced in enumerate(referenced_names):
        schema_dependencies = set()
        for fullname, name in referenced:
            if fullname in definer_index:
                definer = definer_index[fullname]
            elif name in definer_index:
                definer = definer_index[name]
            else:
                raise SchemaRegistryError(
                    f"Avro schema refers to type {name}, which is not defined in the document."
                )
            if definer != index:
                schema_dependencies.add(definer)
        dependencies.append(schema_dependencies)

    # Repeatedly emit, in document order, every schema whose dependencies were all emitted.
    ordered_indexes: List[int] = []
    emitted: Set[int] = set()
    while len(ordered_indexes) < len(schemas):
        ready = [
            index
            for index in range(len(schemas))
            if index not in emitted and dependencies[index] <= emitted
        ]
        if not ready:
            cyclic_names = sorted(
                name
                for index in range(len(schemas))
                if index not in emitted
                for name in defined_names[index]
            )
            raise SchemaRegistryError(
                f"Avro schemas refer to each other in a cycle: {cyclic_names}"
            )
        ordered_indexes.extend(ready)
        emitted.update(ready)

    return [schemas[index] for index in ordered_indexes]


class SchemaRegistry:
    """Compiled named Avro schemas, by full name. Read-only once constructed."""

    def __init__(self, named_schemas: Mapping[str, Any]) -> None:
        """Wrap the named schemas produced by fastavro's parse_schema.

        Args:
            named_schemas: full name -> parsed schema, as filled in by fastavro.parse_schema.
                           Each schema is marked as parsed so readers and writers resolve the
                           names it refers to from this same table.
        """
        shared_named_schemas = dict(named_schemas)
        self._schemas: Dict[str, Any] = {}
        for name, schema in shared_named_schemas.items():
            if isinstance(schema, dict):
                compiled_schema = dict(schema)
                compiled_schema[_PARSED_MARKER_KEY] = True
                compiled_schema[_NAMED_SCHEMAS_KEY] = shared_named_schemas
                self._schemas[name] = compiled_schema

    @classmethod
    def from_schema_document(
        cls, document: SchemaDocument, extra_schemas: Tuple[Dict[str, Any], ...] = ()
    ) -> "SchemaRegistry":
        """Compile every named schema in the document in a single pass.

        Args:
            document: JSON text or parsed JSON of a list of named Avro schemas, or of a single one
            extra_schemas: named schemas to add to the document unless it already defines a type
                           with the same name

        Returns:
            SchemaRegistry containing every named type defined anywhere in the document

        Raises:
            - SchemaRegistryError if the document is not valid JSON, or not a valid set of
              Avro schemas
        """
        if isinstance(document, str):
            try:
                document = json.loads(document)
            except ValueError as e:
                raise SchemaRegistryError(f"Schema document is not valid JSON: {e}") from e

        if isinstance(document, dict):
            schemas = [document]
        elif isinstance(document, list):
            schemas = list(document)
        else:
            raise SchemaRegistryError(
                f"Expected a list of named Avro schemas, but got {type(document).__name__}."
            )

        top_level_names = {schema.get("name") for schema in schemas if isinstance(schema, dict)}
        for extra_schema in extra_schemas:
            if extra_schema["name"] not in top_level_names:
                schemas.append(extra_schema)

        named_schemas: Dict[str, Any] = {}
        for schema in _order_by_references(schemas):
            try:
                parse_schema(schema, named_schemas=named_schemas)
            except (SchemaParseException, ValueError, TypeError, KeyError) as e:
                raise SchemaRegistryError(f"Invalid Avro schema {schema}: {e}") from e

        logger.debug("Compiled %s named Avro schemas", len(named_schemas))
        return cls(named_schemas)

    def get(self, name: str) -> Optional[Any]:
        """Return the compiled schema with the given full name, or None if there is none."""
        return self._schemas.get(name)

    def __contains__(self, name: object) -> bool:
        """Return True if a schema with the given full name is registered."""
        return name in self._schemas

    def __iter__(self) -> Iterator[str]:
        """Iterate over the full names of the registered schemas."""
        return iter(self._schemas)

    def __len__(self) -> int:
        """Return the number of registered schemas."""
        return len(self._schemas)
