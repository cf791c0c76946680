import pytest

from eda_pipeline import (
    Aggregation,
    ConfigurationError,
    SemanticType,
    Table,
    aggregate,
    top_k,
)


def test_mean_per_carrier_in_first_seen_order():
    table = Table.from_rows(
        ["carrier", "delay"],
        [("UA", 10), ("DL", 5), ("UA", 20)],
        types={"delay": "integer"},
    )
    out = aggregate(table, ["carrier"], {"avg_delay": Aggregation("delay", "mean")})
    assert out.rows() == [("UA", 15.0), ("DL", 5.0)]
    assert out.semantic_type("avg_delay") is SemanticType.FLOAT


def test_mean_skips_missing_and_count_includes_it():
    table = Table.from_rows(
        ["g", "x"], [("a", 10), ("a", None), ("a", 20)], types={"x": "integer"}
    )
    out = aggregate(
        table,
        ["g"],
        {
            "mean": Aggregation("x", "mean"),
            "count": Aggregation("x", "count"),
            "count_nonmissing": Aggregation("x", "count", count_missing=False),
            "total": Aggregation("x", "sum"),
        },
    )
    assert out.rows() == [("a", 15.0, 3, 2, 30)]
    assert out.semantic_type("count") is SemanticType.INTEGER


def test_all_missing_partition_yields_missing():
    table = Table.from_rows(
        ["g", "x"], [("a", None), ("b", 1.5)], types={"x": "float"}
    )
    out = aggregate(
        table, ["g"], {"mean": Aggregation("x", "mean"), "total": Aggregation("x", "sum")}
    )
    assert out.rows() == [("a", None, None), ("b", 1.5, 1.5)]


def test_missing_key_forms_its_own_partition():
    table = Table.from_rows(
        ["g", "x"],
        [(None, 1), ("A", 2), (None, 3), ("B", 4)],
        types={"x": "integer"},
    )
    out = aggregate(table, ["g"], {"n": Aggregation("x", "count")})
    assert out.rows() == [(None, 2), ("A", 1), ("B", 1)]


def test_multi_column_keys_follow_first_appearance(flights):
    out = aggregate(
        flights, ["carrier", "origin"], {"n": Aggregation("dep_delay", "count")}
    )
    assert out.rows() == [("UA", "EWR", 3), ("DL", "JFK", 2), ("UA", "LGA", 1)]
    assert out.semantic_type("carrier") is SemanticType.CATEGORICAL


def test_min_max_skip_missing_unless_propagating(flights):
    out = aggregate(
        flights,
        ["carrier"],
        {
            "lo": Aggregation("dep_delay", "min"),
            "hi": Aggregation("dep_delay", "max"),
            "hi_strict": Aggregation("dep_delay", "max", propagate_missing=True),
        },
    )
    assert out.rows() == [("UA", 10, 30, 30), ("DL", 5, 5, None)]


def test_first_and_last():
    table = Table.from_rows(
        ["g", "x"], [("a", None), ("a", 3), ("a", 4), ("a", None)], types={"x": "integer"}
    )
    out = aggregate(
        table,
        ["g"],
        {
            "first": Aggregation("x", "first"),
            "last": Aggregation("x", "last"),
            "first_row": Aggregation("x", "first", propagate_missing=True),
            "last_row": Aggregation("x", "last", propagate_missing=True),
        },
    )
    assert out.rows() == [("a", 3, 4, None, None)]


def test_nth_extremal():
    table = Table.from_rows(
        ["g", "x"],
        [("a", 5), ("a", 9), ("a", 7), ("a", None), ("b", 1)],
        types={"x": "integer"},
    )
    out = aggregate(
        table,
        ["g"],
        {
            "second_largest": Aggregation("x", "nth_extremal", k=2),
            "smallest": Aggregation("x", "nth_extremal", k=1, order="asc"),
            "fifth": Aggregation("x", "nth_extremal", k=5),
        },
    )
    assert out.rows() == [("a", 7, 5, None), ("b", None, 1, None)]


def test_nth_extremal_needs_positive_k():
    with pytest.raises(ConfigurationError):
        Aggregation("x", "nth_extremal")
    with pytest.raises(ConfigurationError):
        Aggregation("x", "nth_extremal", k=0)
    with pytest.raises(ConfigurationError):
        Aggregation("x", "mean", k=2)


def test_unknown_source_column_is_named(flights):
    with pytest.raises(ConfigurationError) as excinfo:
        aggregate(flights, ["carrier"], {"avg": Aggregation("foo", "mean")})
    assert excinfo.value.name == "foo"
    assert "foo" in str(excinfo.value)
    with pytest.raises(ConfigurationError) as excinfo:
        aggregate(flights, ["foo"], {"avg": Aggregation("dep_delay", "mean")})
    assert excinfo.value.name == "foo"


def test_reducer_must_fit_column_type(flights):
    with pytest.raises(ConfigurationError):
        aggregate(flights, ["carrier"], {"avg": Aggregation("origin", "mean")})
    with pytest.raises(ConfigurationError):
        aggregate(flights, ["origin"], {"lo": Aggregation("carrier", "min")})
    with pytest.raises(ConfigurationError):
        aggregate(flights, [], {"avg": Aggregation("dep_delay", "mean")})
    with pytest.raises(ConfigurationError):
        aggregate(flights, ["carrier"], {"carrier": Aggregation("dep_delay", "mean")})
    with pytest.raises(ConfigurationError):
        Aggregation("dep_delay", "median")


def test_aggregate_is_deterministic(flights):
    spec = {"avg": Aggregation("dep_delay", "mean")}
    first = aggregate(flights, ["carrier"], spec)
    second = aggregate(flights, ["carrier"], spec)
    assert first == second
    assert first.fingerprint() == second.fingerprint()


def test_top_k_ties_keep_row_order_and_missing_ranks_last(flights):
    out = top_k(flights, ["carrier"], "dep_delay", 2)
    # UA: 30 (row 2) and 30 (row 3); DL: 5, then the missing delay
    assert out.rows() == [
        ("UA", "EWR", 30),
        ("UA", "LGA", 30),
        ("DL", "JFK", 5),
        ("DL", "JFK", None),
    ]


def test_top_k_returns_small_partition_whole(flights):
    out = top_k(flights, ["carrier"], "dep_delay", 10, order="asc")
    assert len(out) == len(flights)
    assert [r[2] for r in out.rows()] == [10, 20, 30, 30, 5, None]
    with pytest.raises(ConfigurationError):
        top_k(flights, ["carrier"], "dep_delay", 0)
