# Copyright 2023-present Kensho Technologies, LLC.
from dataclasses import dataclass
from enum import Enum, unique
from typing import Tuple

from dataclasses_json import DataClassJsonMixin

from .global_utils import Route


@unique
class ResultModel(str, Enum):
    """The layout in which projected records are emitted."""

    # The record is wrapped under a single key equal to the model name.
    FLAT = "Flat"

    # The record is the only element of a list placed at the model's path in the query.
    NESTED = "Nested"


@unique
class SyncMode(str, Enum):
    """How much of the graph a sync run should read."""

    FULL_REFRESH = "full_refresh"
    INCREMENTAL = "incremental"


@dataclass(init=True, repr=True, eq=True, frozen=True)
class PathToModel(DataClassJsonMixin):
    """Location of the list of records for a model inside a query's result document."""

    # Name of the model type whose records the query returns, e.g. "vcs_PullRequest".
    model_name: str

    # Response keys leading from the root of the result document to the model's records.
    path: Route


@dataclass(init=True, repr=True, eq=True, frozen=True)
class QueryPlan(DataClassJsonMixin):
    """Everything needed to fetch and project the records of one query."""

    query_text: str

    # Whether the query was generated in incremental form, i.e. already accepts the
    # $from and $to variables. Hand-written queries are not.
    incremental: bool

    path_to_model: PathToModel

    # Routes of every "id" field selected by the query, in selection order. Routes of ids inside
    # the model's own selection are relative to the model: the model's own id is ("id",).
    id_field_paths: Tuple[Route, ...]
