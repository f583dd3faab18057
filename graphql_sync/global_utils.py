# Copyright 2017-present Kensho Technologies, LLC.
from hashlib import md5
from typing import Any, Dict, Set, Tuple


# A sequence of response keys locating one value inside a nested result document.
Route = Tuple[str, ...]


def get_md5_hexdigest(text: str) -> str:
    """Return the hex MD5 digest of the UTF-8 encoding of the given text."""
    return md5(text.encode("utf-8")).hexdigest()


def assert_set_equality(set1: Set[Any], set2: Set[Any]) -> None:
    """Assert that the sets are the same."""
    diff1 = set1.difference(set2)
    diff2 = set2.difference(set1)

    if diff1 or diff2:
        error_message_list = ["Expected sets to have the same keys."]
        if diff1:
            error_message_list.append(f"Keys in the first set but not the second: {diff1}.")
        if diff2:
            error_message_list.append(f"Keys in the second set but not the first: {diff2}.")
        raise AssertionError(" ".join(error_message_list))


def without_callables(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the dict keeping only its data entries, i.e. dropping callable values."""
    return {key: value for key, value in data.items() if not callable(value)}
