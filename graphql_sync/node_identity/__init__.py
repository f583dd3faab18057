# Copyright 2023-present Kensho Technologies, LLC.
from .codec import (  # noqa
    ENVELOPE_SCHEMA,
    ENVELOPE_SCHEMA_NAME,
    NodeIdentityCodec,
    get_key_schema_name,
)
from .schema_registry import SchemaRegistry  # noqa
