# Copyright 2023-present Kensho Technologies, LLC.
import json
import unittest

from ..exceptions import NodeIdDecodeError, SchemaRegistryError, UnknownModelError
from ..node_identity import ENVELOPE_SCHEMA, NodeIdentityCodec, SchemaRegistry
from .test_helpers import (
    ALICE_KEY,
    KEY_SCHEMAS,
    PULL_REQUEST_KEY,
    REPOSITORY_KEY,
    encode_key,
    get_codec,
    make_node_id,
)


class NodeIdentityCodecTests(unittest.TestCase):
    def setUp(self) -> None:
        self.codec = get_codec()

    def test_decode_round_trip(self) -> None:
        for model_name, key in (
            ("vcs_User", ALICE_KEY),
            ("vcs_Repository", REPOSITORY_KEY),
            ("vcs_PullRequest", PULL_REQUEST_KEY),
        ):
            node_id = self.codec.encode(model_name, key)
            self.assertIsInstance(node_id, str)
            self.assertEqual(key, self.codec.decode(node_id))

    def test_decode_key_built_outside_the_codec(self) -> None:
        node_id = make_node_id(
            self.codec, "vcs_User", encode_key(self.codec, "vcs_User", ALICE_KEY)
        )
        self.assertEqual(ALICE_KEY, self.codec.decode(node_id))

    def test_malformed_base64(self) -> None:
        with self.assertRaises(NodeIdDecodeError):
            self.codec.decode("not base64!")

    def test_non_ascii_node_id(self) -> None:
        for node_id in ("café", "éééé"):
            with self.assertRaises(NodeIdDecodeError):
                self.codec.decode(node_id)

    def test_not_a_string(self) -> None:
        with self.assertRaises(NodeIdDecodeError):
            self.codec.decode(12345)  # type: ignore[arg-type]

    def test_unknown_model(self) -> None:
        node_id = make_node_id(self.codec, "vcs_Commit", b"\x00")
        with self.assertRaises(UnknownModelError) as context:
            self.codec.decode(node_id)
        self.assertEqual("vcs_Commit", context.exception.model_name)

        # Registry misses are decode errors like any other.
        with self.assertRaises(NodeIdDecodeError):
            self.codec.decode(node_id)

    def test_truncated_key(self) -> None:
        key_bytes = encode_key(self.codec, "vcs_User", ALICE_KEY)
        # Keep the length-prefixed "uid" field and drop "source".
        node_id = make_node_id(self.codec, "vcs_User", key_bytes[: 1 + len("alice")])
        with self.assertRaises(NodeIdDecodeError):
            self.codec.decode(node_id)

    def test_trailing_bytes(self) -> None:
        key_bytes = encode_key(self.codec, "vcs_User", ALICE_KEY)
        node_id = make_node_id(self.codec, "vcs_User", key_bytes + b"\x02")
        with self.assertRaises(NodeIdDecodeError):
            self.codec.decode(node_id)

    def test_encode_unknown_model(self) -> None:
        with self.assertRaises(UnknownModelError):
            self.codec.encode("vcs_Commit", {})


class SchemaRegistryTests(unittest.TestCase):
    def test_registry_contains_every_named_schema(self) -> None:
        registry = SchemaRegistry.from_schema_document(KEY_SCHEMAS)
        self.assertEqual(
            {
                "vcs_PullRequest__Key",
                "vcs_Repository__Key",
                "vcs_Organization__Key",
                "vcs_User__Key",
            },
            set(registry),
        )
        self.assertEqual(4, len(registry))
        self.assertIn("vcs_Repository__Key", registry)
        self.assertIsNone(registry.get("vcs_Commit__Key"))

    def test_forward_references_in_any_order(self) -> None:
        for document in (KEY_SCHEMAS, list(reversed(KEY_SCHEMAS))):
            codec = NodeIdentityCodec.from_schema_document(json.dumps(document))
            node_id = codec.encode("vcs_PullRequest", PULL_REQUEST_KEY)
            self.assertEqual(PULL_REQUEST_KEY, codec.decode(node_id))

    def test_nested_named_schemas_are_registered(self) -> None:
        document = [
            {
                "type": "record",
                "name": "vcs_Commit__Key",
                "fields": [
                    {"name": "sha", "type": "string"},
                    {
                        "name": "repository",
                        "type": {
                            "type": "record",
                            "name": "vcs_Repository__Key",
                            "fields": [{"name": "name", "type": "string"}],
                        },
                    },
                ],
            },
        ]
        codec = NodeIdentityCodec.from_schema_document(document)
        self.assertIn("vcs_Repository__Key", codec.registry)

        repository_key = {"name": "graphql-sync"}
        self.assertEqual(
            repository_key, codec.decode(codec.encode("vcs_Repository", repository_key))
        )
        commit_key = {"sha": "abc123", "repository": repository_key}
        self.assertEqual(commit_key, codec.decode(codec.encode("vcs_Commit", commit_key)))

    def test_document_declaring_the_envelope(self) -> None:
        codec = NodeIdentityCodec.from_schema_document(KEY_SCHEMAS + [ENVELOPE_SCHEMA])
        node_id = codec.encode("vcs_User", ALICE_KEY)
        self.assertEqual(ALICE_KEY, codec.decode(node_id))

    def test_registry_without_envelope(self) -> None:
        with self.assertRaises(AssertionError):
            NodeIdentityCodec(SchemaRegistry.from_schema_document(KEY_SCHEMAS))

    def test_undefined_reference(self) -> None:
        document = [
            {
                "type": "record",
                "name": "vcs_Commit__Key",
                "fields": [{"name": "repository", "type": "vcs_Repository__Key"}],
            },
        ]
        with self.assertRaises(SchemaRegistryError):
            SchemaRegistry.from_schema_document(document)

    def test_reference_cycle(self) -> None:
        document = [
            {"type": "record", "name": "A", "fields": [{"name": "b", "type": ["null", "B"]}]},
            {"type": "record", "name": "B", "fields": [{"name": "a", "type": ["null", "A"]}]},
        ]
        with self.assertRaises(SchemaRegistryError):
            SchemaRegistry.from_schema_document(document)

    def test_self_reference(self) -> None:
        document = [
            {
                "type": "record",
                "name": "tms_Task__Key",
                "fields": [
                    {"name": "uid", "type": "string"},
                    {"name": "parent", "type": ["null", "tms_Task__Key"]},
                ],
            },
        ]
        codec = NodeIdentityCodec.from_schema_document(document)
        task_key = {"uid": "2", "parent": {"uid": "1", "parent": None}}
        self.assertEqual(task_key, codec.decode(codec.encode("tms_Task", task_key)))

    def test_duplicate_definition(self) -> None:
        with self.assertRaises(SchemaRegistryError):
            SchemaRegistry.from_schema_document(KEY_SCHEMAS + KEY_SCHEMAS[:1])

    def test_invalid_document(self) -> None:
        with self.assertRaises(SchemaRegistryError):
            SchemaRegistry.from_schema_document("[{")
        with self.assertRaises(SchemaRegistryError):
            SchemaRegistry.from_schema_document(json.dumps("vcs_User__Key"))
