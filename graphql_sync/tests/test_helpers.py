# Copyright 2023-present Kensho Technologies, LLC.
"""Common GraphQL test inputs and helpers."""
import base64
from io import BytesIO
import json
from typing import Any, Dict

from fastavro import schemaless_writer
from graphql import GraphQLSchema, build_schema

from ..node_identity import ENVELOPE_SCHEMA_NAME, NodeIdentityCodec, get_key_schema_name


SCHEMA_TEXT = """
schema {
  query: query_root
}

scalar timestamptz

input timestamptz_comparison_exp {
  _gte: timestamptz
  _lt: timestamptz
}

input Int_comparison_exp {
  _eq: Int
}

input String_comparison_exp {
  _eq: String
}

input vcs_Organization_bool_exp {
  _and: [vcs_Organization_bool_exp!]
  uid: String_comparison_exp
  refreshedAt: timestamptz_comparison_exp
}

input vcs_Repository_bool_exp {
  _and: [vcs_Repository_bool_exp!]
  name: String_comparison_exp
  refreshedAt: timestamptz_comparison_exp
}

input vcs_User_bool_exp {
  _and: [vcs_User_bool_exp!]
  uid: String_comparison_exp
  refreshedAt: timestamptz_comparison_exp
}

input vcs_PullRequest_bool_exp {
  _and: [vcs_PullRequest_bool_exp!]
  number: Int_comparison_exp
  refreshedAt: timestamptz_comparison_exp
}

type vcs_Organization {
  id: ID!
  uid: String!
  name: String
  refreshedAt: timestamptz!
}

type vcs_Repository {
  id: ID!
  name: String!
  organization: vcs_Organization
  refreshedAt: timestamptz!
}

type vcs_User {
  id: ID!
  uid: String!
  name: String
  refreshedAt: timestamptz!
}

type vcs_PullRequest {
  id: ID!
  number: Int!
  title: String
  author: vcs_User
  repository: vcs_Repository
  reviewers(limit: Int): [vcs_User!]!
  refreshedAt: timestamptz!
}

type vcs_PullRequestConnection {
  nodes: [vcs_PullRequest!]!
}

type vcs_Namespace {
  pullRequests: vcs_PullRequestConnection!
}

type vcs_PullRequest_aggregate {
  count: Int!
}

type query_root {
  vcs: vcs_Namespace!
  vcs_Organization(where: vcs_Organization_bool_exp, limit: Int): [vcs_Organization!]!
  vcs_PullRequest(where: vcs_PullRequest_bool_exp, limit: Int): [vcs_PullRequest!]!
  vcs_PullRequest_aggregate: vcs_PullRequest_aggregate!
  vcs_PullRequest_by_pk(id: ID!): vcs_PullRequest
  vcs_Repository(where: vcs_Repository_bool_exp, limit: Int): [vcs_Repository!]!
  vcs_User(where: vcs_User_bool_exp, limit: Int): [vcs_User!]!
}
"""

ALL_MODEL_NAMES = frozenset({"vcs_Organization", "vcs_PullRequest", "vcs_Repository", "vcs_User"})

# Pull request keys embed repository keys, declared later in the document.
KEY_SCHEMAS = [
    {
        "type": "record",
        "name": "vcs_PullRequest__Key",
        "fields": [
            {"name": "number", "type": "long"},
            {"name": "repository", "type": "vcs_Repository__Key"},
        ],
    },
    {
        "type": "record",
        "name": "vcs_Repository__Key",
        "fields": [
            {"name": "name", "type": "string"},
            {"name": "organization", "type": "vcs_Organization__Key"},
        ],
    },
    {
        "type": "record",
        "name": "vcs_Organization__Key",
        "fields": [
            {"name": "uid", "type": "string"},
            {"name": "source", "type": "string"},
        ],
    },
    {
        "type": "record",
        "name": "vcs_User__Key",
        "fields": [
            {"name": "uid", "type": "string"},
            {"name": "source", "type": "string"},
        ],
    },
]

ORGANIZATION_KEY = {"uid": "kensho", "source": "GitHub"}
REPOSITORY_KEY = {"name": "graphql-sync", "organization": ORGANIZATION_KEY}
PULL_REQUEST_KEY = {"number": 1, "repository": REPOSITORY_KEY}
ALICE_KEY = {"uid": "alice", "source": "GitHub"}
BOB_KEY = {"uid": "bob", "source": "GitHub"}


def get_schema() -> GraphQLSchema:
    """Get a schema object for testing."""
    return build_schema(SCHEMA_TEXT)


def get_codec() -> NodeIdentityCodec:
    """Get a codec for the key schemas of the test schema."""
    return NodeIdentityCodec.from_schema_document(json.dumps(KEY_SCHEMAS))


def encode_avro(codec: NodeIdentityCodec, schema_name: str, value: Dict[str, Any]) -> bytes:
    """Encode the value with one of the codec's registered schemas."""
    buffer = BytesIO()
    schemaless_writer(buffer, codec.registry.get(schema_name), value)
    return buffer.getvalue()


def make_node_id(codec: NodeIdentityCodec, model_name: str, key_bytes: bytes) -> str:
    """Wrap arbitrary key bytes in a node id envelope naming the given model."""
    envelope_bytes = encode_avro(
        codec, ENVELOPE_SCHEMA_NAME, {"model": model_name, "key": key_bytes}
    )
    return base64.b64encode(envelope_bytes).decode("ascii")


def encode_key(codec: NodeIdentityCodec, model_name: str, key: Dict[str, Any]) -> bytes:
    """Return the Avro encoding of a key of the given model, without the envelope."""
    return encode_avro(codec, get_key_schema_name(model_name), key)
