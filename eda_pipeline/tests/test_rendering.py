from pathlib import Path

import matplotlib
import pytest

from eda_pipeline import Aggregation, ConfigurationError, Table, aggregate
from eda_pipeline.rendering import (
    ChartSpec,
    ColorRule,
    TableDisplay,
    render_chart,
    render_table_html,
)


@pytest.fixture
def delays(flights):
    return aggregate(
        flights, ["carrier"], {"avg_delay": Aggregation("dep_delay", "mean")}
    )


def test_chart_written_as_png(tmp_path: Path, delays):
    out = tmp_path / "delays.png"
    assert render_chart(delays, ChartSpec(x="carrier", y="avg_delay", title="Delays"), out) is None
    assert out.read_bytes()[:4] == b"\x89PNG"


def test_chart_theme_does_not_leak(tmp_path: Path, delays):
    before = matplotlib.rcParams["axes.facecolor"]
    spec = ChartSpec(
        x="carrier", y="avg_delay", kind="line", theme={"axes.facecolor": "#eeeeee"}
    )
    render_chart(delays, spec, tmp_path / "line.png")
    assert matplotlib.rcParams["axes.facecolor"] == before


def test_chart_rejects_bad_columns_and_kind(tmp_path: Path, delays):
    with pytest.raises(ConfigurationError) as excinfo:
        render_chart(delays, ChartSpec(x="carrier", y="foo"), tmp_path / "x.png")
    assert excinfo.value.name == "foo"
    with pytest.raises(ConfigurationError):
        render_chart(delays, ChartSpec(x="avg_delay", y="carrier"), tmp_path / "x.png")
    with pytest.raises(ConfigurationError):
        render_chart(delays, ChartSpec(x="carrier", y="avg_delay", kind="pie"), tmp_path / "x.png")
    with pytest.raises(ConfigurationError):
        render_chart(
            delays,
            ChartSpec(x="carrier", y="avg_delay", theme={"no.such.param": 1}),
            tmp_path / "x.png",
        )


def test_html_table_with_caption_and_color_rules(tmp_path: Path, flights):
    out = tmp_path / "flights.html"
    display = TableDisplay(
        columns=["carrier", "dep_delay"],
        caption="Departure delays",
        color_rules=[
            ColorRule("dep_delay", ">", 20, color="#ffcc00"),
            ColorRule("dep_delay", "missing", color="#dddddd"),
        ],
    )
    render_table_html(flights, display, out)
    html = out.read_text(encoding="utf-8")
    assert "Departure delays" in html
    assert "#ffcc00" in html
    assert "#dddddd" in html
    assert "origin" not in html


def test_html_rules_must_target_displayed_columns(tmp_path: Path, flights):
    display = TableDisplay(columns=["carrier"], color_rules=[ColorRule("dep_delay", ">", 1)])
    with pytest.raises(ConfigurationError):
        render_table_html(flights, display, tmp_path / "t.html")
    with pytest.raises(ConfigurationError):
        render_table_html(
            Table.from_columns({"a": ["x"]}),
            TableDisplay(color_rules=[ColorRule("a", "~", "x")]),
            tmp_path / "t.html",
        )


def test_html_table_needs_an_output_path(tmp_path: Path, flights):
    with pytest.raises(TypeError):
        render_table_html(flights, None)
    out = tmp_path / "plain.html"
    render_table_html(flights, None, out)
    assert "carrier" in out.read_text(encoding="utf-8")
