from __future__ import annotations

from openapi_dataflow.schema.defaults import find_default_response
from openapi_dataflow.schema.merge import deep_merge
from tests.conftest import orders_openapi


def test_merge_concatenates_lists_and_lets_incoming_win() -> None:
    assert deep_merge({"a": [1], "b": 2}, {"a": [2], "b": 3}) == {"a": [1, 2], "b": 3}


def test_merge_keeps_one_sided_keys() -> None:
    assert deep_merge({"a": 1}, {"b": 2}) == {"a": 1, "b": 2}


def test_merge_keeps_duplicates() -> None:
    assert deep_merge({"a": [1, 2]}, {"a": [2]}) == {"a": [1, 2, 2]}


def test_merge_is_single_level() -> None:
    merged = deep_merge({"n": {"x": [1], "y": 1}}, {"n": {"x": [2]}})

    assert merged == {"n": {"x": [2]}}


def test_merge_does_not_mutate_inputs() -> None:
    existing = {"a": [1]}
    deep_merge(existing, {"a": [2]})

    assert existing == {"a": [1]}


def test_merge_treats_list_positions_as_keys() -> None:
    assert deep_merge([[1], "a"], [[2]]) == [[1, 2], "a"]
    assert deep_merge([[1]], [[2], "b"]) == [[1, 2], "b"]


def test_merge_empty_list_keeps_existing_rows() -> None:
    assert deep_merge([[{"Id": 1}]], []) == [[{"Id": 1}]]


def test_merge_of_different_shapes_takes_incoming_unless_empty() -> None:
    assert deep_merge({"a": 1}, [1]) == [1]
    assert deep_merge([1], {}) == [1]


def test_default_response_value_is_unwrapped() -> None:
    assert find_default_response(orders_openapi()) == {"orders": []}


def test_default_response_without_value_is_returned_as_is() -> None:
    document = {"x": {"defaultResponse": {"message": "nothing here"}}}

    assert find_default_response(document) == {"message": "nothing here"}


def test_default_response_search_is_depth_first() -> None:
    document = {
        "a": {"deep": {"defaultResponse": {"value": "first"}}},
        "b": {"defaultResponse": {"value": "second"}},
    }

    assert find_default_response(document) == "first"


def test_empty_default_response_continues_with_next_branch() -> None:
    document = {
        "a": {"defaultResponse": {}, "nested": {"defaultResponse": {"value": "skipped"}}},
        "b": [{"defaultResponse": {"value": "found"}}],
    }

    assert find_default_response(document) == "found"


def test_missing_default_response() -> None:
    assert find_default_response({"paths": {}}) is None
    assert find_default_response([]) is None
