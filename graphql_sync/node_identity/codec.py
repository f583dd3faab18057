# Copyright 2023-present Kensho Technologies, LLC.
import base64
from io import BytesIO
import struct
from typing import Any, Dict

from fastavro import schemaless_reader, schemaless_writer

from ..exceptions import NodeIdDecodeError, UnknownModelError
from .schema_registry import SchemaDocument, SchemaRegistry


ENVELOPE_SCHEMA_NAME = "Node"
ENVELOPE_MODEL_FIELD_NAME = "model"
ENVELOPE_KEY_FIELD_NAME = "key"
KEY_SCHEMA_SUFFIX = "__Key"

# Every node id is an envelope naming the model whose key schema encodes the key bytes.
ENVELOPE_SCHEMA: Dict[str, Any] = {
    "type": "record",
    "name": ENVELOPE_SCHEMA_NAME,
    "fields": [
        {"name": ENVELOPE_MODEL_FIELD_NAME, "type": "string"},
        {"name": ENVELOPE_KEY_FIELD_NAME, "type": "bytes"},
    ],
}

# Errors fastavro raises while reading bytes that do not match the schema.
_AVRO_READ_ERRORS = (
    EOFError,
    StopIteration,
    struct.error,
    IndexError,
    KeyError,
    TypeError,
    ValueError,
)


def get_key_schema_name(model_name: str) -> str:
    """Return the name of the schema encoding the keys of the given model."""
    return model_name + KEY_SCHEMA_SUFFIX


def _read_exactly(schema: Any, data: bytes, description: str) -> Any:
    """Decode the bytes with the schema, requiring the whole buffer to be consumed."""
    buffer = BytesIO(data)
    try:
        value = schemaless_reader(buffer, schema)
    except _AVRO_READ_ERRORS as e:
        raise NodeIdDecodeError(f"Could not decode {description}: {e!r}") from e

    if buffer.tell() != len(data):
        raise NodeIdDecodeError(
            f"Could not decode {description}: {len(data) - buffer.tell()} trailing bytes."
        )
    return value


def _write(schema: Any, value: Any) -> bytes:
    """Encode the value with the schema."""
    buffer = BytesIO()
    schemaless_writer(buffer, schema, value)
    return buffer.getvalue()


class NodeIdentityCodec:
    """Convert between opaque node ids and the structured keys they encode.

    A node id is the base64 encoding of an Avro envelope record {model, key}, where "key" holds the
    Avro encoding of the node's key under the schema named "<model>__Key". Keys of one model may
    embed the keys of other models, e.g. a commit key embeds the key of its repository.
    """

    def __init__(self, registry: SchemaRegistry) -> None:
        """Create a codec resolving key schemas from the given registry."""
        envelope_schema = registry.get(ENVELOPE_SCHEMA_NAME)
        if envelope_schema is None:
            raise AssertionError(
                f"The schema registry does not define the envelope schema {ENVELOPE_SCHEMA_NAME}."
            )
        self.registry = registry
        self._envelope_schema = envelope_schema

    @classmethod
    def from_schema_document(cls, document: SchemaDocument) -> "NodeIdentityCodec":
        """Create a codec from the document declaring every key schema.

        The envelope schema is added to the document unless the document declares it itself.
        """
        return cls(SchemaRegistry.from_schema_document(document, extra_schemas=(ENVELOPE_SCHEMA,)))

    def decode(self, node_id: str) -> Dict[str, Any]:
        """Return the structured key encoded in the node id.

        Args:
            node_id: base64-encoded envelope, as found in the "id" fields of result documents

        Returns:
            dict mirroring the model's key schema, possibly containing the keys of other models

        Raises:
            - UnknownModelError if the envelope names a model without a registered key schema
            - NodeIdDecodeError if the id is not valid base64, or does not match the schemas
        """
        if not isinstance(node_id, str):
            raise NodeIdDecodeError(f"Expected a node id string, but got {type(node_id).__name__}.")
        try:
            envelope_bytes = base64.b64decode(node_id, validate=True)
        except ValueError as e:
            # binascii.Error for bad characters or padding, plain ValueError for non-ASCII text.
            raise NodeIdDecodeError(f"Node id is not valid base64: {e}") from e

        envelope = _read_exactly(self._envelope_schema, envelope_bytes, "node id envelope")
        model_name = envelope[ENVELOPE_MODEL_FIELD_NAME]
        key_schema = self.registry.get(get_key_schema_name(model_name))
        if key_schema is None:
            raise UnknownModelError(model_name)

        return _read_exactly(key_schema, envelope[ENVELOPE_KEY_FIELD_NAME], f"{model_name} key")

    def encode(self, model_name: str, key: Dict[str, Any]) -> str:
        """Return the node id of the model's record with the given key. Inverse of decode."""
        key_schema = self.registry.get(get_key_schema_name(model_name))
        if key_schema is None:
            raise UnknownModelError(model_name)

        envelope = {
            ENVELOPE_MODEL_FIELD_NAME: model_name,
            ENVELOPE_KEY_FIELD_NAME: _write(key_schema, key),
        }
        return base64.b64encode(_write(self._envelope_schema, envelope)).decode("ascii")
