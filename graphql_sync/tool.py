#!/usr/bin/env python
# Copyright 2017-present Kensho Technologies, LLC.
"""Utility modeled after json.tool, prints the plan of a GraphQL query read from stdin.

Used as: python -m graphql_sync.tool SCHEMA_FILE [--incremental]
where SCHEMA_FILE holds the schema of the graph in GraphQL SDL.
"""
import argparse
import sys
from typing import List, Optional

from graphql import build_schema

from .incremental import to_incremental
from .query_analysis import analyze_query


def main(argv: Optional[List[str]] = None) -> None:
    """Read a GraphQL query from standard input, and output its plan as JSON to standard output."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("schema_file", help="path to the schema of the graph, in GraphQL SDL")
    parser.add_argument(
        "--incremental",
        action="store_true",
        help="also print the incremental form of the query",
    )
    args = parser.parse_args(argv)

    with open(args.schema_file, "r") as f:
        schema = build_schema(f.read())
    query = " ".join(sys.stdin.readlines())

    plan = analyze_query(query, schema)
    sys.stdout.write(plan.to_json(indent=2))
    sys.stdout.write("\n")
    if args.incremental:
        sys.stdout.write(to_incremental(query, plan.path_to_model))
        sys.stdout.write("\n")


if __name__ == "__main__":
    main()
