# Copyright 2023-present Kensho Technologies, LLC.
import unittest

from ..incremental.checkpoint import (
    INFINITY_MILLIS,
    CheckpointTracker,
    get_filter_variables,
    get_partition_key,
    get_refreshed_at_millis,
    millis_to_iso_string,
)
from ..typedefs import PathToModel, QueryPlan


class CheckpointTests(unittest.TestCase):
    def test_advance_is_monotonic(self) -> None:
        tracker = CheckpointTracker()
        for refreshed_at_millis in [5, 3, 9, 7]:
            tracker.advance("vcs_PullRequest", refreshed_at_millis)
        self.assertEqual(9, tracker.checkpoint("vcs_PullRequest"))

        # Replaying old records does not move the checkpoint back.
        self.assertEqual(9, tracker.advance("vcs_PullRequest", 5))
        self.assertEqual(9, tracker.checkpoint("vcs_PullRequest"))

    def test_unknown_partition(self) -> None:
        tracker = CheckpointTracker()
        self.assertEqual(0, tracker.checkpoint("vcs_PullRequest"))
        self.assertEqual({}, tracker.to_state())

    def test_state_round_trip(self) -> None:
        state = {
            "vcs_PullRequest": {"refreshedAtMillis": 1700000000000},
            "acbd18db4cc2f85cedef654fccc4a4d8": {"refreshedAtMillis": 1},
        }
        tracker = CheckpointTracker.from_state(state)

        self.assertEqual(1700000000000, tracker.checkpoint("vcs_PullRequest"))
        self.assertEqual(1, tracker.checkpoint("acbd18db4cc2f85cedef654fccc4a4d8"))
        self.assertEqual(state, tracker.to_state())

        tracker.advance("vcs_User", 0)
        self.assertEqual({"refreshedAtMillis": 0}, tracker.to_state()["vcs_User"])

    def test_get_refreshed_at_millis(self) -> None:
        self.assertEqual(
            1700000000000, get_refreshed_at_millis({"refreshedAt": "2023-11-14T22:13:20.000Z"})
        )
        self.assertEqual(
            1666216934483,
            get_refreshed_at_millis({"refreshedAt": "2022-10-19T22:02:14.483165+00:00"}),
        )
        # Timezone-naive timestamps are in UTC.
        self.assertEqual(
            1700000000000, get_refreshed_at_millis({"refreshedAt": "2023-11-14T22:13:20"})
        )
        self.assertEqual(
            1700000000000,
            get_refreshed_at_millis({"metadata": {"refreshedAt": "1700000000000"}}),
        )

    def test_missing_or_invalid_refreshed_at(self) -> None:
        self.assertEqual(0, get_refreshed_at_millis({}))
        self.assertEqual(0, get_refreshed_at_millis({"refreshedAt": None}))
        self.assertEqual(0, get_refreshed_at_millis({"refreshedAt": "yesterday"}))
        self.assertEqual(0, get_refreshed_at_millis({"metadata": {}}))
        self.assertEqual(0, get_refreshed_at_millis({"metadata": {"refreshedAt": "soon"}}))
        self.assertEqual(0, get_refreshed_at_millis({"metadata": {"refreshedAt": float("inf")}}))
        self.assertEqual(0, get_refreshed_at_millis({"metadata": {"refreshedAt": float("nan")}}))

    def test_partition_key(self) -> None:
        path_to_model = PathToModel("vcs_PullRequest", ("vcs_PullRequest",))
        explicit_plan = QueryPlan("foo", False, path_to_model, ())
        generated_plan = QueryPlan("foo", True, path_to_model, ())

        self.assertEqual("acbd18db4cc2f85cedef654fccc4a4d8", get_partition_key(explicit_plan))
        self.assertEqual("vcs_PullRequest", get_partition_key(generated_plan))

    def test_filter_variables(self) -> None:
        self.assertEqual("2200-01-01T00:00:00.000Z", millis_to_iso_string(INFINITY_MILLIS))
        self.assertEqual(
            {"from": "1970-01-01T00:00:00.000Z", "to": "2200-01-01T00:00:00.000Z"},
            get_filter_variables(0),
        )
        self.assertEqual(
            {"from": "2023-11-14T22:13:20.000Z", "to": "2200-01-01T00:00:00.000Z"},
            get_filter_variables(1700000000000),
        )
