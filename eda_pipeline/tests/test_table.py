import datetime as dt

import pandas as pd
import pytest

from eda_pipeline import (
    ConfigurationError,
    InvariantViolation,
    SemanticType,
    Table,
    is_missing,
)


def test_declared_types_map_to_nullable_dtypes():
    table = Table.from_columns(
        {
            "name": ["a", None],
            "n": [1, None],
            "x": [1.5, None],
            "flag": [True, None],
            "when": [dt.datetime(2024, 1, 1, 8, 30), None],
            "kind": ["b", None],
        },
        types={
            "n": "integer",
            "x": "float",
            "flag": "boolean",
            "when": "datetime",
            "kind": SemanticType.CATEGORICAL,
        },
    )
    frame = table.to_frame()
    assert str(frame["name"].dtype) == "string"
    assert str(frame["n"].dtype) == "Int64"
    assert str(frame["x"].dtype) == "Float64"
    assert str(frame["flag"].dtype) == "boolean"
    assert pd.api.types.is_datetime64_any_dtype(frame["when"])
    assert isinstance(frame["kind"].dtype, pd.CategoricalDtype)
    # every column holds a tagged missing value in row 1
    assert table.rows()[1] == (None, None, None, None, None, None)


def test_empty_string_is_not_missing():
    table = Table.from_columns({"a": ["", None]})
    assert table.rows() == [("",), (None,)]
    assert not is_missing("")
    assert is_missing(None) and is_missing(pd.NA) and is_missing(float("nan"))


def test_categories_follow_first_seen_order():
    table = Table.from_columns({"c": ["b", "a", None, "b"]}, types={"c": "categorical"})
    assert table.column("c").cat.categories.tolist() == ["b", "a"]


def test_length_mismatch_rejected_at_construction():
    with pytest.raises(InvariantViolation):
        Table.from_columns({"a": ["x", "y"], "b": ["z"]})


def test_duplicate_names_rejected():
    with pytest.raises(InvariantViolation):
        Table.from_rows(["a", "a"], [("x", "y")])
    frame = pd.DataFrame([[1, 2]], columns=["a", "a"])
    with pytest.raises(InvariantViolation):
        Table(frame, {"a": "integer"})


def test_schema_must_cover_every_column():
    frame = pd.DataFrame({"a": ["x"], "b": ["y"]})
    with pytest.raises(InvariantViolation):
        Table(frame, {"a": "text"})
    with pytest.raises(InvariantViolation):
        Table(frame, {"a": "text", "b": "text", "c": "text"})


def test_value_that_type_cannot_hold_is_rejected():
    with pytest.raises(InvariantViolation):
        Table.from_columns({"n": ["7"]}, types={"n": "integer"})
    with pytest.raises(InvariantViolation):
        Table.from_columns({"n": [1.5]}, types={"n": "integer"})


def test_unknown_type_name_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        Table.from_columns({"a": ["x"]}, types={"a": "decimal"})


def test_row_length_checked_in_from_rows():
    with pytest.raises(InvariantViolation):
        Table.from_rows(["a", "b"], [("x", "y"), ("z",)])


def test_to_frame_returns_a_copy():
    table = Table.from_columns({"a": ["x", "y"]})
    frame = table.to_frame()
    frame.loc[0, "a"] = "changed"
    assert table.rows() == [("x",), ("y",)]


def test_take_preserves_order_and_schema(flights):
    subset = flights.take([5, 0])
    assert subset.rows() == [("UA", "EWR", 20), ("UA", "EWR", 10)]
    assert subset.schema == flights.schema


def test_equality_and_fingerprint_follow_content(flights):
    same = Table.from_columns(
        {
            "carrier": ["UA", "DL", "UA", "UA", "DL", "UA"],
            "origin": ["EWR", "JFK", "EWR", "LGA", "JFK", "EWR"],
            "dep_delay": [10, 5, 30, 30, None, 20],
        },
        types={"carrier": "categorical", "dep_delay": "integer"},
    )
    assert same == flights
    assert same.fingerprint() == flights.fingerprint()

    other = flights.take([0, 1, 2, 3, 4])
    assert other != flights
    assert other.fingerprint() != flights.fingerprint()


def test_with_column_returns_new_table(flights):
    doubled = flights.with_column("dep_delay", flights.column("dep_delay") * 2, "integer")
    assert doubled.column("dep_delay").tolist()[:2] == [20, 10]
    assert flights.column("dep_delay").tolist()[:2] == [10, 5]
    with pytest.raises(InvariantViolation):
        flights.with_column("extra", [1, 2], "integer")


def test_require_columns_names_the_missing_column(flights):
    with pytest.raises(ConfigurationError) as excinfo:
        flights.select(["carrier", "foo"])
    assert excinfo.value.name == "foo"
    assert "foo" in str(excinfo.value)
